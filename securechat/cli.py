from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path, PurePath

from securechat.core.config_manager import load_config
from securechat.core.errors import SecureChatError
from securechat.core.logging_config import cipher_logger, error_logger, system_logger
from securechat.core.settings import KEY_DIR
from securechat.crypto.block_cipher import BlockCipher, logging_trace
from securechat.crypto.key_generator import generate_symmetric_key
from securechat.crypto.rsa_utils import (
    generate_key_pair,
    load_private_key,
    load_public_key,
    save_key_pair,
)
from securechat.transfer.session import ReceivedFile, SecureSession
from securechat.utils.file_utils import ensure_dir


def _trace_for(args: argparse.Namespace, config: dict):
    if args.trace or config.get("trace", {}).get("enabled"):
        return logging_trace(cipher_logger, logging.INFO)
    return None


def cmd_keygen(args: argparse.Namespace) -> int:
    print(generate_symmetric_key())
    return 0


def cmd_rsa_keygen(args: argparse.Namespace) -> int:
    password = args.password
    if password is None and args.ask_password:
        password = getpass.getpass("Password for the private key: ")

    _, private_key = generate_key_pair()
    key_dir = save_key_pair(private_key, args.out_dir, password)
    print(f"RSA keypair written to {key_dir}")
    return 0


def cmd_encrypt(args: argparse.Namespace) -> int:
    cipher = BlockCipher(args.key, _trace_for(args, load_config()))
    print(cipher.encrypt(args.text))
    return 0


def cmd_decrypt(args: argparse.Namespace) -> int:
    cipher = BlockCipher(args.key, _trace_for(args, load_config()))
    print(cipher.decrypt_text(args.ciphertext))
    return 0


def cmd_pack(args: argparse.Namespace) -> int:
    private_key = load_private_key(args.key_dir, args.password)
    session = SecureSession(args.key, private_key, None, _trace_for(args, load_config()))

    lines = session.send_file(args.file)

    out = Path(args.out) if args.out else Path(f"{Path(args.file).name}.transfer")
    out.write_text("\n".join(lines) + "\n", encoding="utf-8")
    print(f"{len(lines)} frames written to {out}")
    return 0


def cmd_unpack(args: argparse.Namespace) -> int:
    config = load_config()
    peer_public_key = load_public_key(args.peer_key_dir)
    session = SecureSession(args.key, None, peer_public_key, _trace_for(args, config))

    out_dir = ensure_dir(args.out_dir or config["transfer"]["download_dir"])

    received = 0
    with open(args.transcript, "r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            result = session.handle_line(line)
            if isinstance(result, ReceivedFile):
                saved = session.files.save_file(result.data, out_dir / PurePath(result.metadata.filename).name)
                print(f"Verified {result.metadata} -> {saved}")
                received += 1

    if received == 0:
        print("No complete file transfer found in transcript", file=sys.stderr)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="securechat", description="Encrypted chat and file transfer core.")
    sub = p.add_subparsers(dest="cmd", required=True)

    keygen = sub.add_parser("keygen", help="Generate a 128-bit session key")
    keygen.set_defaults(func=cmd_keygen)

    rsa_keygen = sub.add_parser("rsa-keygen", help="Generate and store an RSA identity")
    rsa_keygen.add_argument("--out-dir", default=str(KEY_DIR))
    rsa_keygen.add_argument("--password", default=None)
    rsa_keygen.add_argument("--ask-password", action="store_true")
    rsa_keygen.set_defaults(func=cmd_rsa_keygen)

    def add_cipher(x: argparse.ArgumentParser) -> None:
        x.add_argument("--key", required=True, help="32-character hex session key")
        x.add_argument("--trace", action="store_true", help="Log every cipher stage")

    encrypt = sub.add_parser("encrypt")
    add_cipher(encrypt)
    encrypt.add_argument("text")
    encrypt.set_defaults(func=cmd_encrypt)

    decrypt = sub.add_parser("decrypt")
    add_cipher(decrypt)
    decrypt.add_argument("ciphertext")
    decrypt.set_defaults(func=cmd_decrypt)

    pack = sub.add_parser("pack", help="Write the signed transfer frames of a file")
    add_cipher(pack)
    pack.add_argument("--key-dir", default=str(KEY_DIR))
    pack.add_argument("--password", default=None)
    pack.add_argument("--out", default=None)
    pack.add_argument("file")
    pack.set_defaults(func=cmd_pack)

    unpack = sub.add_parser("unpack", help="Verify and reassemble a transfer transcript")
    add_cipher(unpack)
    unpack.add_argument("--peer-key-dir", required=True)
    unpack.add_argument("--out-dir", default=None)
    unpack.add_argument("transcript")
    unpack.set_defaults(func=cmd_unpack)

    args = p.parse_args(argv)
    system_logger.info(f"securechat {args.cmd}")

    try:
        return int(args.func(args))
    except (SecureChatError, FileNotFoundError) as e:
        error_logger.error(f"FAIL {args.cmd} | {type(e).__name__}: {e}")
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

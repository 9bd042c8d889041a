import os

from securechat.core.settings import SYMMETRIC_KEY_BYTES


def generate_symmetric_key() -> str:
    """
    Return a fresh 128-bit session key as 32 lowercase hex characters.
    """
    return os.urandom(SYMMETRIC_KEY_BYTES).hex()


if __name__ == "__main__":
    print(f"Generated 128-bit key (hex): {generate_symmetric_key()}")

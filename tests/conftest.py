from __future__ import annotations

import os
import tempfile

# must happen before securechat.core.settings is imported anywhere
os.environ["SECURECHAT_HOME"] = tempfile.mkdtemp(prefix="securechat-test-")

import pytest

from securechat.crypto.block_cipher import BlockCipher
from securechat.crypto.rsa_utils import generate_key_pair

KEY = "0123456789abcdef0123456789abcdef"
OTHER_KEY = "00112233445566778899aabbccddeeff"


@pytest.fixture
def key():
    return KEY


@pytest.fixture
def cipher():
    return BlockCipher(KEY)


@pytest.fixture(scope="session")
def alice_keys():
    return generate_key_pair()


@pytest.fixture(scope="session")
def bob_keys():
    return generate_key_pair()

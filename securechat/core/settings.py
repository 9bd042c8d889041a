import os
from pathlib import Path

# ============================================================
# BASE DIRECTORIES
# ============================================================

# SECURECHAT_HOME overrides the per-user directory (used by tests and
# portable installs)
APP_HOME = Path(os.environ.get("SECURECHAT_HOME") or Path.home() / ".securechat")

KEY_DIR  = APP_HOME / "keys"
DATA_DIR = APP_HOME / "data"
LOG_DIR  = APP_HOME / "logs"

CONFIG_FILE = APP_HOME / "config.json"


# ============================================================
# INIT REQUIRED DIRECTORIES
# ============================================================

KEY_DIR.mkdir(parents=True, exist_ok=True)
DATA_DIR.mkdir(parents=True, exist_ok=True)
LOG_DIR.mkdir(parents=True, exist_ok=True)

(DATA_DIR / "received").mkdir(exist_ok=True)

(LOG_DIR / "system").mkdir(exist_ok=True)
(LOG_DIR / "crypto").mkdir(exist_ok=True)
(LOG_DIR / "transfer").mkdir(exist_ok=True)


# ============================================================
# CIPHER PARAMETERS
# ============================================================

ROUNDS = 10
IV_SIZE = 16                    # 128-bit
SYMMETRIC_KEY_BYTES = 16        # 128-bit
SYMMETRIC_KEY_HEX_LENGTH = SYMMETRIC_KEY_BYTES * 2

# RSA
RSA_KEY_SIZE        = 2048
RSA_PUBLIC_EXPONENT = 65537


# ============================================================
# FILE TRANSFER PARAMETERS
# ============================================================

CHUNK_SIZE    = 1024 * 1024          # 1MB
MAX_FILE_SIZE = 100 * 1024 * 1024    # 100MB


# ============================================================
# SELF-TEST
# ============================================================

if __name__ == "__main__":
    print("APP_HOME :", APP_HOME)
    print("KEY_DIR  :", KEY_DIR)
    print("DATA_DIR :", DATA_DIR)
    print("LOG_DIR  :", LOG_DIR)
    print("CONFIG   :", CONFIG_FILE)

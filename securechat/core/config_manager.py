import copy
import json
from pathlib import Path

from securechat.core.settings import CONFIG_FILE, DATA_DIR
from securechat.core.logging_config import system_logger

DEFAULT_CONFIG = {
    "transfer": {
        "download_dir": str(DATA_DIR / "received"),
    },
    "trace": {
        "enabled": False,
    },
}


def load_config(path=None) -> dict:
    config_file = Path(path) if path else CONFIG_FILE

    if not config_file.exists():
        system_logger.warning(
            f"{config_file.name} not found. Creating default config."
        )
        save_config(DEFAULT_CONFIG, config_file)
        return copy.deepcopy(DEFAULT_CONFIG)

    with open(config_file, "r", encoding="utf-8") as f:
        return json.load(f)


def save_config(config: dict, path=None):
    config_file = Path(path) if path else CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)

    with open(config_file, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)


def update_config(new_data: dict, path=None) -> dict:
    config = load_config(path)
    config.update(new_data)
    save_config(config, path)
    return config

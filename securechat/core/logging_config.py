import logging
from pathlib import Path
from securechat.core.settings import LOG_DIR

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(name: str, log_file: str, level=logging.INFO, console: bool = True) -> logging.Logger:
    """
    Logger writing ``level`` and above to ``LOG_DIR/log_file``.

    The console only gets WARNING and above, so CLI output stays readable
    while the log files keep the full trail.
    """
    log_path = Path(LOG_DIR) / log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()  # re-imports must not stack handlers

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(max(level, logging.WARNING))
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


# ============================================================
# MODULE LOGGERS
# ============================================================
cipher_logger = setup_logger('cipher', 'crypto/cipher.log')
key_logger = setup_logger('key_exchange', 'crypto/key_exchange.log')
transfer_logger = setup_logger('file_transfer', 'transfer/file_transfer.log')
session_logger = setup_logger('session', 'transfer/session.log')
system_logger = setup_logger('system', 'system/system.log')
# failures already reach the console through the module that raised them
error_logger = setup_logger('error', 'error/error.log', level=logging.ERROR, console=False)

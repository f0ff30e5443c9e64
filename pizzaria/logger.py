# logger.py
# Configuração de logging da aplicação

import logging
import sys

from pizzaria.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = LOG_LEVEL):
    """Configura o handler raiz (console) uma única vez"""
    root = logging.getLogger()
    if any(getattr(h, "_pizzaria", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler._pizzaria = True
    root.addHandler(handler)
    root.setLevel(level)

    # httpx loga cada request em INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_error(logger: logging.Logger, msg: str, exc: Exception = None):
    """Registra erro com traceback opcional"""
    if exc:
        logger.error(f"{msg}: {str(exc)}", exc_info=True)
    else:
        logger.error(msg)

from __future__ import annotations
import logging
import sys
from pythonjsonlogger import jsonlogger
from ..config import get_settings

S = get_settings()

def setup_logging() -> None:
    root = logging.getLogger()
    if root.handlers:
        for h in list(root.handlers):
            root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    # fields passed via `extra=` are appended as top-level JSON keys
    formatter = jsonlogger.JsonFormatter(
        "%(levelname)s %(name)s %(message)s %(asctime)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(S.LOG_LEVEL)

    # quiet noisy loggers if desired
    logging.getLogger("sqlalchemy.engine").setLevel("WARNING")

from __future__ import annotations

import logging

from ledgerhub.core.config import get_settings


_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging() -> None:
    # Configure the root logger once; repeated app factories must not stack handlers.
    settings = get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=_FORMAT)
    root.setLevel(level)
    # SQL echo is noisy; keep engine logs at warning unless explicitly raised.
    logging.getLogger("sqlalchemy.engine").setLevel(max(level, logging.WARNING))

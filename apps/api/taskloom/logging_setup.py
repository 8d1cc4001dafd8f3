from __future__ import annotations

import logging

from taskloom.config import settings

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
  root = logging.getLogger()
  resolved = (level or settings.log_level or "INFO").upper()
  if not root.handlers:
    logging.basicConfig(level=resolved, format=_FORMAT)
  else:
    root.setLevel(resolved)
  logging.getLogger("taskloom").setLevel(resolved)

"""
Process-wide logging setup.

stdout only; gunicorn and the platform collect it. Modules log through
`logging.getLogger(__name__)`.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if any(getattr(h, "_stepstreak", False) for h in root.handlers):
        root.setLevel(level.upper())
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._stepstreak = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level.upper())

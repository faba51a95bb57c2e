# homecare/core/logging.py
import logging
import sys

from homecare.core.config import settings

_configured = False


def configure_logging(level: str = None) -> None:
    """
    Attach one stdout handler to the "homecare" logger tree.
    Safe to call more than once (app startup, CLI, tests).
    """
    global _configured
    root = logging.getLogger("homecare")
    root.setLevel((level or settings.LOG_LEVEL).upper())
    if _configured:
        return

    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                          "%Y-%m-%d %H:%M:%S"))
    root.addHandler(ch)
    _configured = True

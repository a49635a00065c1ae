"""
Shared helpers for the permit engine.

Exported helpers
----------------
logger
    Package-wide ``logging.Logger`` (``permit_engine``).  Modules import it as
    ``from ...utils import logger``; handlers and levels are left to the host
    application.

is_same_address
    Case-insensitive address comparison.
"""

import logging

logger = logging.getLogger("permit_engine")
logger.addHandler(logging.NullHandler())


def is_same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()

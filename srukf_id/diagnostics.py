"""Diagnostic reporting.

Failure diagnostics go to an optional user callback and to the
``srukf_id`` logger.  Per-tick traces are logged at DEBUG only.  The
library never installs logging handlers.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

logger = logging.getLogger("srukf_id")

_diag_callback: Optional[Callable[[str], None]] = None


def set_diag_callback(callback: Optional[Callable[[str], None]]) -> None:
    """Install *callback* to receive failure diagnostics.

    Parameters
    ----------
    callback : callable or None
        Called with a single ``str`` for every diagnostic.  Pass ``None``
        to remove a previously installed callback.

    Examples
    --------
    >>> messages = []
    >>> set_diag_callback(messages.append)
    >>> set_diag_callback(None)
    """
    global _diag_callback
    _diag_callback = callback


def diag(message: str, level: int = logging.WARNING) -> None:
    """Report *message* through the logger and the installed callback."""
    logger.log(level, message)
    if _diag_callback is not None:
        _diag_callback(message)

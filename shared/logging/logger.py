"""Logger accessor used by both packages.

Falls back to a plain text configuration the first time a logger is
requested before ``configure_logging`` ran (scripts, ad hoc clients).
"""

from __future__ import annotations

import logging

_configured = False


def get_logger(name: str, auto_configure: bool = True) -> logging.Logger:
    """Get a logger, configuring a minimal root handler on first use.

    Args:
        name: Logger name (dotted, e.g. ``hub.broadcaster``)
        auto_configure: Whether to install the fallback configuration
    """
    global _configured

    if auto_configure and not _configured:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        _configured = True

    return logging.getLogger(name)


def is_configured() -> bool:
    return _configured


def mark_configured() -> None:
    """Called by configure_logging so the fallback is never installed."""
    global _configured
    _configured = True

"""
Timezone utilities for report timestamps.

Generation-start / generation-end timestamps are handed to the rendering
layer unmodified, so they are always timezone-aware.
"""
from __future__ import annotations

import logging
from datetime import datetime
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from replica_drift.core.config import settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_app_timezone() -> ZoneInfo:
    """
    Get the application timezone from settings.

    Falls back to UTC when the configured name is unknown.

    Examples:
        >>> tz = get_app_timezone()
        >>> now = datetime.now(tz)
    """
    try:
        return ZoneInfo(settings.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", settings.timezone)
        return ZoneInfo("UTC")


def now() -> datetime:
    """Current datetime in the application timezone."""
    return datetime.now(get_app_timezone())

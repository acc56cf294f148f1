"""Shared utility functions for the billing and gateway services."""

import logging
import uuid
from datetime import datetime, UTC
from decimal import Decimal, ROUND_HALF_UP

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def now_utc() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def new_id() -> str:
    """Generate a string primary key."""
    return str(uuid.uuid4())


def to_money(value: Decimal | float | int | str) -> Decimal:
    """
    Normalize a numeric value to a two-decimal money amount.

    Floats go through ``str`` first so 9.99 stays 9.99 instead of the
    nearest binary fraction.

    Args:
        value: Amount as received from JSON, the database or a caller.

    Returns:
        Decimal quantized to cents.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def setup_logging(verbose: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, set DEBUG level; otherwise INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

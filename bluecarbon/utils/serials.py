"""
Credit serial number generation.
"""

import uuid

from bluecarbon.core.constants import SERIAL_ENTROPY_CHARS


def generate_serial(prefix: str, vintage_year: int) -> str:
    """
    Build a credit serial number, e.g. BCC-2025-3F2A9C0D11E4B7A6.

    Uniqueness comes from uuid4 entropy; the carbon_credits.serial_number
    unique constraint is the final guard.
    """
    token = uuid.uuid4().hex[:SERIAL_ENTROPY_CHARS].upper()
    return f"{prefix}-{vintage_year}-{token}"

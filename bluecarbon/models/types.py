"""
Shared column types.
"""

from enum import Enum
from typing import Type

from sqlalchemy import Enum as SAEnum


def enum_type(enum_cls: Type[Enum], name: str) -> SAEnum:
    """Persist an Enum by its lowercase value (e.g. "under_review"), not its member name."""
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )

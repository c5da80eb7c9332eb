"""
Shared SQLAlchemy DeclarativeBase for all autorespawn models.
"""

from sqlalchemy.orm import DeclarativeBase

from ..metadata import metadata


class Base(DeclarativeBase):
    """
    Shared declarative base for autorespawn models.

    All models must inherit from this Base so init_db() can create every
    table from a single metadata object.
    """

    metadata = metadata

"""
Shared SQLAlchemy metadata for autorespawn models.

Kept in its own module to avoid circular imports between database.py and models.
"""

from sqlalchemy import MetaData

metadata = MetaData()

"""
autorespawn - death classification and automatic respawn for managed entities.
"""

__version__ = "0.1.0"

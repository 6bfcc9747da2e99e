"""Validation of derived line-item amounts"""

from .consistency import ConsistencyValidator

__all__ = ["ConsistencyValidator"]

"""
ChurchBook API Module
"""

from . import records, sync

__all__ = ['records', 'sync']

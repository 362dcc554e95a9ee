"""
linkkeep package initializer.
"""

from . import manager
from . import scraper
from . import storage

__all__ = ["manager", "scraper", "storage"]

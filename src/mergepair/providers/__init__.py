"""Wrappers around the external tools mergepair drives."""
from __future__ import annotations

from .composer import ComposerProvider
from .database import DatabaseProvider
from .drush import DrushProvider, DrushVersionError
from .git import GitProvider
from .terminus import TerminusError, TerminusProvider

__all__ = [
    "ComposerProvider",
    "DatabaseProvider",
    "DrushProvider",
    "DrushVersionError",
    "GitProvider",
    "TerminusError",
    "TerminusProvider",
]

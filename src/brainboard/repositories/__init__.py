"""Repositories package."""

from brainboard.repositories.base import BaseRepository
from brainboard.repositories.boards import BoardRepository

__all__ = [
    "BaseRepository",
    "BoardRepository",
]

"""Client package: backend API wrapper and timer submission."""

from .api import ApiError, PracticeApi
from .submission import ApiSubmitter

__all__ = ["ApiError", "PracticeApi", "ApiSubmitter"]

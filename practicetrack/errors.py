"""Typed failures shared by the store, the stats layer, and the HTTP API.

Each class carries the HTTP status the API boundary answers with, so the
core can raise without knowing anything about Flask.

Taxonomy
--------
ValidationError       400  malformed input, rejected before the store
AuthenticationError   401  missing / bad bearer token or credentials
ForbiddenError        403  resource exists but belongs to someone else
NotFoundError         404  no matching row
ConflictError         409  a second open session for the same user, dupes
UpstreamError         502  the sheet-analysis service failed
"""

from __future__ import annotations


class PracticeTrackError(Exception):
    """Base class for every failure the API knows how to render."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PracticeTrackError):
    status_code = 400


class AuthenticationError(PracticeTrackError):
    status_code = 401


class ForbiddenError(PracticeTrackError):
    status_code = 403


class NotFoundError(PracticeTrackError):
    status_code = 404


class ConflictError(PracticeTrackError):
    status_code = 409


class UpstreamError(PracticeTrackError):
    status_code = 502


class SaveIncompleteError(PracticeTrackError):
    """Finalizing a local timer stopped partway through.

    ``session_id`` is the server-side session if it was created (``None``
    when the very first call failed); ``pending_laps`` lists the lap
    numbers that still have to be sent.  The timer keeps its snapshot so
    the save can be retried without creating a second session.
    """

    def __init__(
        self,
        message: str,
        *,
        session_id: int | None,
        pending_laps: list[int],
    ) -> None:
        super().__init__(message)
        self.session_id = session_id
        self.pending_laps = pending_laps

"""Errors contained by the dispatcher."""

from __future__ import annotations

from typing import Optional


class DispatchError(Exception):
    """Base class for dispatcher-side failures."""


class ReplyTransportError(DispatchError):
    """A reply, edit or follow-up call against the chat transport failed."""


class RegistrationError(DispatchError):
    """The bulk command-schema replace call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code

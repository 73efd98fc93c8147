"""
Command dispatch
Cache-aware routing of command invocations to their handlers,
replay of cached responses, and command schema registration.
"""

from .errors import DispatchError, RegistrationError, ReplyTransportError
from .registry import CommandMeta
from .replay import ReplaySequencer
from .router import DispatchOutcome, DispatchRouter, DispatchState

__all__ = [
    'CommandMeta',
    'DispatchError',
    'DispatchOutcome',
    'DispatchRouter',
    'DispatchState',
    'RegistrationError',
    'ReplaySequencer',
    'ReplyTransportError',
]

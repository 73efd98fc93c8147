"""Static command registry."""

from . import cachestats, echo, ping, random_pick, status

COMMANDS = [
    ping.command,
    status.command,
    echo.command,
    random_pick.command,
    cachestats.command,
]

__all__ = ['COMMANDS']

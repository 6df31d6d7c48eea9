"""ChatScribe bot package."""

from .app import main
from .bot import ScribeBot
from .constants import COMMAND_TABLE, PROJECT_ROOT
from .logging_setup import log
from .router import CommandRouter
from .types import CommandSpec, ParsedCommand

__all__ = [
    "COMMAND_TABLE",
    "CommandRouter",
    "CommandSpec",
    "log",
    "main",
    "ParsedCommand",
    "PROJECT_ROOT",
    "ScribeBot",
]

"""Prefix-based command parsing, including reply-chained commands."""

from __future__ import annotations

from collections.abc import Iterable

from .constants import COMMAND_TABLE
from .types import CommandSpec, ParsedCommand


class CommandRouter:
    """Maps message text to a command name and its argument string."""

    def __init__(self, table: Iterable[CommandSpec] = COMMAND_TABLE):
        self.table = tuple(table)
        self._by_name = {spec.name: spec for spec in self.table}

    def spec(self, name: str) -> CommandSpec | None:
        return self._by_name.get(name)

    def parse(self, text: str | None) -> ParsedCommand | None:
        if not text:
            return None
        for spec in self.table:
            if text.startswith(spec.prefix):
                return ParsedCommand(
                    command=spec.name,
                    content=text[len(spec.prefix):].strip(),
                    prefix=spec.prefix,
                )
        return None

    def resolve(
        self,
        text: str | None,
        replied_text: str | None = None,
        replied_is_own: bool = False,
    ) -> ParsedCommand | None:
        """Parse ``text``; an unprefixed reply to one of our own command
        messages inherits that command with ``text`` as the argument."""
        parsed = self.parse(text)
        if parsed or not replied_is_own:
            return parsed

        inherited = self.parse(replied_text)
        if inherited is None:
            return None
        inherited.content = (text or "").strip()
        inherited.chained = True
        return inherited

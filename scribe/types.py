"""Shared datatypes for ChatScribe."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CommandSpec:
    name: str
    prefix: str
    help: str = ""


@dataclass
class ParsedCommand:
    command: str
    content: str
    prefix: str
    chained: bool = False

"""Composed ChatScribe bot class built from focused mixins."""

from __future__ import annotations

from .base import BotBaseMixin
from .commands import BotCommandsMixin
from .external_search import BotExternalSearchMixin
from .handlers import BotHandlersMixin
from .lifecycle import BotLifecycleMixin
from .messaging import BotMessagingMixin
from .remote import BotRemoteMixin


class ScribeBot(
    BotMessagingMixin,
    BotHandlersMixin,
    BotCommandsMixin,
    BotExternalSearchMixin,
    BotRemoteMixin,
    BotLifecycleMixin,
    BotBaseMixin,
):
    """The main bot class wiring Telegram, the message log, and search together."""

    pass


__all__ = ["ScribeBot"]

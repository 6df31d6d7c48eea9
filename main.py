#!/usr/bin/env python3
"""
ChatScribe — Telegram chat log & search assistant
==================================================
Logs every message of the chats it sits in, answers prefixed commands,
and searches both the chat log and an external index.

Architecture: Telegram Polling → handle_message → LogStore append → CommandRouter
             → QueryEngine / StreamAggregator / remote endpoints → Reply
"""

from scribe import main

if __name__ == "__main__":
    main()

# -*- coding: utf-8 -*-
"""
Azkar Group Bot - Error Types
=============================
None of these are fatal: each is recovered where it is raised,
per group or per event.

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""


class AzkarBotError(Exception):
    """Base class for all bot errors."""


class ProviderError(AzkarBotError):
    """Content feed unreachable or returned an unusable shape."""

    def __init__(self, category: str, reason: str):
        super().__init__(f"Azkar feed '{category}' failed: {reason}")
        self.category = category
        self.reason = reason


class TransportError(AzkarBotError):
    """A Telegram call (send/edit/ack/member lookup) failed."""

    def __init__(self, chat_id, reason: str, error_code: int = None):
        super().__init__(f"Telegram call for chat {chat_id} failed: {reason}")
        self.chat_id = chat_id
        self.reason = reason
        self.error_code = error_code


class PermissionDenied(AzkarBotError):
    """Non-administrator tried an admin-only action."""


class InvalidAdjustment(AzkarBotError):
    """A settings adjustment would break an invariant (e.g. interval floor)."""


class UnknownAction(AzkarBotError):
    """Callback data that does not map to any menu action."""

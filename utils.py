# -*- coding: utf-8 -*-
"""
Azkar Group Bot - Utility Functions
===================================
Helper functions used across the application.

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""
from datetime import datetime
from typing import Tuple

import pytz

import config
from errors import PermissionDenied, TransportError
from logger_config import logger


# =====================================================
# TIME UTILITIES
# =====================================================

def parse_time(time_str: str) -> Tuple[int, int]:
    """
    Parse time string in HH:MM format.

    Args:
        time_str: Time string (e.g., "06:30")

    Returns:
        tuple: (hour, minute)

    Raises:
        ValueError: if the string is not a valid HH:MM time
    """
    parts = time_str.split(':')
    if len(parts) != 2:
        raise ValueError(f"Invalid time string: {time_str!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time string: {time_str!r}")
    return hour, minute


def shift_time(time_str: str, minutes: int) -> str:
    """
    Move an HH:MM time by the given minutes, wrapping around midnight.
    """
    hour, minute = parse_time(time_str)
    total = (hour * 60 + minute + minutes) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"


def get_group_timezone(settings: dict):
    """
    Resolve a group's pytz timezone, falling back to the default one.
    """
    tz_name = settings.get('timezone') or config.DEFAULT_TIMEZONE
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone {tz_name!r}, using {config.DEFAULT_TIMEZONE}")
        return pytz.timezone(config.DEFAULT_TIMEZONE)


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


# =====================================================
# ADMIN CHECK UTILITIES
# =====================================================

ADMIN_ROLES = ('creator', 'administrator')


def is_user_admin(bot, chat_id: int, user_id: int) -> bool:
    """
    Check if a user is an admin of the specified chat.

    A user's own private chat counts as administered by them.

    Args:
        bot: TeleBot instance
        chat_id: The chat/group ID
        user_id: The user's Telegram ID

    Returns:
        bool: True if user is admin, False otherwise (including lookup failures)
    """
    if chat_id == user_id:
        return True

    from notification_service import get_member_role
    try:
        return get_member_role(bot, chat_id, user_id) in ADMIN_ROLES
    except TransportError as e:
        logger.warning(f"Admin check failed for user {user_id} in {chat_id}: {e}")
        return False


def require_admin(bot, chat_id: int, user_id: int):
    """
    Raises:
        PermissionDenied: unless user_id administers chat_id
    """
    if not is_user_admin(bot, chat_id, user_id):
        raise PermissionDenied(f"User {user_id} is not an admin of {chat_id}")

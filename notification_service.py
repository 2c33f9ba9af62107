# -*- coding: utf-8 -*-
"""
Azkar Group Bot - Notification Service Module
=============================================
Thin wrapper around the Telegram calls the bot makes.

Every call raises TransportError on failure so callers can decide on a
fallback; nothing here swallows errors.

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""
import time

import requests
import telebot
from telebot.apihelper import ApiTelegramException

import config
from errors import TransportError
from logger_config import logger


def _transport_error(chat_id, e: Exception) -> TransportError:
    if isinstance(e, ApiTelegramException):
        error_code = e.result_json.get('error_code') if e.result_json else e.error_code
        description = e.result_json.get('description', '') if e.result_json else str(e)

        if error_code == 403 or 'kicked' in description or 'blocked' in description:
            logger.warning(f"🚫 Bot can't reach chat {chat_id}: {description}")
        else:
            logger.error(f"⚠️ Telegram API Error for {chat_id}: {description}")
        return TransportError(chat_id, description, error_code)

    logger.error(f"❌ Network error talking to Telegram for {chat_id}: {e}")
    return TransportError(chat_id, str(e))


# =====================================================
# SENDING
# =====================================================

def send_text(bot: telebot.TeleBot, chat_id: int, text: str, parse_mode: str = 'HTML',
              reply_markup=None, reply_to_message_id: int = None):
    """
    Send a message with a retry on network failures.

    Telegram API errors (blocked, chat not found, bad markup) are not retried.

    Returns:
        telebot.types.Message: The sent message

    Raises:
        TransportError: when the message couldn't be delivered
    """
    for attempt in range(config.MAX_RETRIES):
        try:
            message = bot.send_message(
                chat_id,
                text,
                parse_mode=parse_mode,
                reply_markup=reply_markup,
                reply_to_message_id=reply_to_message_id,
                disable_web_page_preview=True
            )
            logger.debug(f"Message sent to {chat_id} on attempt {attempt + 1}")
            return message

        except ApiTelegramException as e:
            raise _transport_error(chat_id, e)

        except requests.RequestException as e:
            logger.warning(f"Send attempt {attempt + 1} to {chat_id} failed: {type(e).__name__} - {e}")
            if attempt == config.MAX_RETRIES - 1:
                raise _transport_error(chat_id, e)
            time.sleep(config.RETRY_DELAY)


def send_document(bot: telebot.TeleBot, chat_id: int, document: str, caption: str = None):
    """
    Send a document (file id or URL).

    Raises:
        TransportError: when the document couldn't be delivered
    """
    try:
        return bot.send_document(chat_id, document, caption=caption)
    except (ApiTelegramException, requests.RequestException) as e:
        raise _transport_error(chat_id, e)


def edit_menu(bot: telebot.TeleBot, chat_id: int, message_id: int, text: str, reply_markup=None):
    """
    Replace a menu message in place.

    An unchanged menu ("message is not modified") is not an error.

    Raises:
        TransportError: when the edit failed
    """
    try:
        bot.edit_message_text(
            text,
            chat_id,
            message_id,
            parse_mode='HTML',
            reply_markup=reply_markup
        )
    except ApiTelegramException as e:
        if 'message is not modified' in str(e):
            logger.debug(f"Menu in {chat_id} unchanged")
            return
        raise _transport_error(chat_id, e)
    except requests.RequestException as e:
        raise _transport_error(chat_id, e)


def acknowledge(bot: telebot.TeleBot, callback_id: str, text: str = None, show_alert: bool = False):
    """
    Answer a callback query so the client's loading indicator clears.

    Raises:
        TransportError: when the answer failed (e.g. query too old)
    """
    try:
        bot.answer_callback_query(callback_id, text or None, show_alert=show_alert)
    except (ApiTelegramException, requests.RequestException) as e:
        raise _transport_error(callback_id, e)


# =====================================================
# CHAT MEMBERSHIP
# =====================================================

def get_member_role(bot: telebot.TeleBot, chat_id: int, user_id: int) -> str:
    """
    Role of a user in a chat ('creator', 'administrator', 'member', ...).

    Raises:
        TransportError: when the lookup failed
    """
    try:
        return bot.get_chat_member(chat_id, user_id).status
    except (ApiTelegramException, requests.RequestException) as e:
        raise _transport_error(chat_id, e)

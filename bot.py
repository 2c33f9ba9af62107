#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Azkar Group Bot
===============
A multi-group Telegram bot that sends scheduled azkar (morning, evening,
periodic, Friday and Islamic occasions) and lets group admins tune each
group's reminders from an inline settings menu.

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""
import signal
import sys

import telebot

import config
from bot_handlers import register_handlers
from logger_config import logger
from scheduler_service import AzkarScheduler
from settings_store import SettingsStore


def main():
    """
    Main entry point for bot.
    Validates configuration, starts the scheduler and polls Telegram.
    """
    errors = config.validate_config()
    if errors:
        logger.error("❌ Configuration validation failed:")
        for error in errors:
            logger.error(f"  {error}")
        sys.exit(1)

    logger.info("=" * 60)
    logger.info("Azkar Group Bot Starting...")
    logger.info("=" * 60)

    bot = telebot.TeleBot(config.BOT_TOKEN)
    store = SettingsStore(persist=config.PERSIST_SETTINGS)
    logger.info(f"Settings store ready ({len(store)} groups, persist={config.PERSIST_SETTINGS})")

    register_handlers(bot, store)

    scheduler = AzkarScheduler(bot, store)

    def signal_handler(signum, frame):
        """
        Handle system signals for graceful shutdown.
        SIGINT: Ctrl+C, SIGTERM: systemd/docker stop
        """
        logger.info(f"Received signal {signum}, shutting down...")
        bot.stop_polling()
        scheduler.stop()
        if config.PERSIST_SETTINGS:
            from database import close_all_connections
            close_all_connections()
        logger.info("Graceful shutdown complete")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler.start()

    logger.info("Starting bot polling...")
    try:
        bot.infinity_polling(
            timeout=60,
            long_polling_timeout=50,
            allowed_updates=['message', 'callback_query', 'my_chat_member']
        )
    except Exception as e:
        logger.error(f"Bot polling error: {e}", exc_info=True)
    finally:
        scheduler.stop()


if __name__ == '__main__':
    main()

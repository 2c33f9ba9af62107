"""Shared fixtures for the bot's tests."""
import os
import tempfile

# Keep test runs from writing bot_debug.log into the working tree
os.environ.setdefault('LOG_FILE', os.path.join(tempfile.gettempdir(), 'azkar_bot_tests.log'))

from unittest.mock import MagicMock, Mock

import pytest
from telebot.apihelper import ApiTelegramException

import content_provider
from settings_store import SettingsStore

GROUP_ID = -1001234567890
OTHER_GROUP_ID = -1009876543210
ADMIN_ID = 111
MEMBER_ID = 222


def telegram_error(code: int = 403, description: str = 'Forbidden: bot was blocked by the user'):
    return ApiTelegramException('sendMessage', Mock(), {'error_code': code, 'description': description})


@pytest.fixture
def store():
    return SettingsStore()


@pytest.fixture
def fake_bot():
    bot = MagicMock()
    bot.get_me.return_value.username = 'azkar_test_bot'
    return bot


@pytest.fixture(autouse=True)
def clear_azkar_cache():
    content_provider.clear_cache()
    yield
    content_provider.clear_cache()

# -*- coding: utf-8 -*-
"""
Azkar Group Bot - Settings Menu Protocol
========================================
Maps callback actions to settings changes and the menu to show next.

Callback data format: "<verb>_<group_id>", e.g. "toggle_morning_-1001234567".
The group id is always the target group being configured, which is not
the chat the button lives in (admins configure groups from their private
chat with the bot).

This module does no Telegram I/O and no permission checks; bot_handlers
verifies the acting user is an admin of the target group before calling
handle_action().

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""
import re
from typing import Callable, Dict, NamedTuple, Optional, Tuple

import telebot

import config
from errors import InvalidAdjustment, UnknownAction
from logger_config import logger
from utils import get_group_timezone, shift_time

# Telegram's limit on callback_data
MAX_CALLBACK_BYTES = 64

_ACTION_RE = re.compile(r'^([a-z][a-z0-9_]*)_(-?\d+)$')

ENABLED_MARK = '✅'
DISABLED_MARK = '☑️'


class RenderedMenu(NamedTuple):
    category: str
    title: str
    keyboard: telebot.types.InlineKeyboardMarkup


class MenuResult(NamedTuple):
    menu: Optional[RenderedMenu]
    ack_text: str = ''
    show_alert: bool = False


# =====================================================
# MENU DEFINITIONS
# =====================================================

CATEGORY_TITLES: Dict[str, str] = {
    'root': '⚙️ <b>لوحة التحكم الرئيسية</b>\n\nاختر القسم المطلوب:',
    'daily': '🌅 <b>إعدادات أذكار الصباح والمساء</b>',
    'periodic': '🔄 <b>إعدادات الأذكار الدورية</b>',
    'friday': '📅 <b>تذكيرات الجمعة</b>',
    'ramadan': '🌙 <b>إعدادات رمضان</b>',
    'occasions': '⛰ <b>المناسبات الخاصة</b>',
    'audio': '🎵 <b>إعدادات الصوت</b>',
    'ai': '🤖 <b>إعدادات الذكاء الاصطناعي</b>\n\nيجيب البوت عن الأسئلة الدينية العامة',
    'timezone': '⏰ <b>المنطقة الزمنية</b>\n\nتُحسب أوقات التذكيرات حسب المنطقة المختارة',
}

# Root menu buttons, in display order
ROOT_ENTRIES = [
    ('daily', '🌅 أذكار الصباح والمساء'),
    ('periodic', '🔄 الأذكار الدورية'),
    ('friday', '📅 تذكيرات الجمعة'),
    ('ramadan', '🌙 أذكار رمضان'),
    ('occasions', '⛰ مناسبات خاصة'),
    ('audio', '🎵 إعدادات الصوت'),
    ('ai', '🤖 الذكاء الاصطناعي'),
    ('timezone', '⏰ المنطقة الزمنية'),
    ('stats', '📊 الإحصائيات'),
]

# toggle name -> (settings key, parent menu, label)
TOGGLES: Dict[str, Tuple[str, str, str]] = {
    'morning': ('morning_azkar', 'daily', 'أذكار الصباح'),
    'evening': ('evening_azkar', 'daily', 'أذكار المساء'),
    'periodic': ('periodic_azkar', 'periodic', 'الأذكار الدورية'),
    'friday': ('friday_reminder', 'friday', 'تذكير سورة الكهف'),
    'istijabah': ('istijabah_hour', 'friday', 'ساعة الاستجابة'),
    'ramadan': ('ramadan_azkar', 'ramadan', 'أذكار رمضان'),
    'qadr': ('lailatul_qadr', 'ramadan', 'ليلة القدر'),
    'lastten': ('last_ten_days', 'ramadan', 'العشر الأواخر'),
    'arafat': ('arafat_day', 'occasions', 'يوم عرفة'),
    'eid': ('eid_reminders', 'occasions', 'العيدين'),
    'ashura': ('ashura_reminders', 'occasions', 'يوم عاشوراء'),
    'takbeer': ('eid_takbeer', 'occasions', 'تكبيرات العيد'),
    'quran_audio': ('quran_audio', 'audio', 'صوتيات القرآن'),
    'azkar_audio': ('azkar_audio', 'audio', 'صوتيات الأذكار'),
    'ai': ('ai_responses', 'ai', 'الذكاء الاصطناعي'),
}

# time name -> (settings key, parent menu, label)
TIMED: Dict[str, Tuple[str, str, str]] = {
    'morning': ('morning_azkar', 'daily', 'وقت الصباح'),
    'evening': ('evening_azkar', 'daily', 'وقت المساء'),
    'friday': ('friday_reminder', 'friday', 'وقت التذكير'),
}


# =====================================================
# ACTION ENCODING
# =====================================================

def encode_action(verb: str, group_id: int) -> str:
    """
    Build callback data for a verb targeting a group.

    Raises:
        ValueError: if the result exceeds Telegram's callback_data limit
    """
    data = f"{verb}_{group_id}"
    if len(data.encode('utf-8')) > MAX_CALLBACK_BYTES:
        raise ValueError(f"Callback data too long ({len(data)} bytes): {data}")
    return data


def parse_action(data: str) -> Tuple[str, int]:
    """
    Split callback data into (verb, target group id).

    Raises:
        UnknownAction: for anything not produced by encode_action()
    """
    match = _ACTION_RE.match(data or '')
    if not match:
        raise UnknownAction(data)
    return match.group(1), int(match.group(2))


# =====================================================
# RENDERING
# =====================================================

def _button(text: str, verb: str, group_id: int) -> telebot.types.InlineKeyboardButton:
    return telebot.types.InlineKeyboardButton(text, callback_data=encode_action(verb, group_id))


def _toggle_button(name: str, group_id: int, settings: dict) -> telebot.types.InlineKeyboardButton:
    key, _, label = TOGGLES[name]
    mark = ENABLED_MARK if settings[key]['enabled'] else DISABLED_MARK
    return _button(f"{mark} {label}", f"toggle_{name}", group_id)


def _time_row(name: str, group_id: int, settings: dict) -> list:
    key, _, label = TIMED[name]
    return [
        _button('➖', f"time_earlier_{name}", group_id),
        _button(f"⏰ {label}: {settings[key]['time']}", f"open_{TIMED[name][1]}", group_id),
        _button('➕', f"time_later_{name}", group_id),
    ]


def _back_row(group_id: int) -> list:
    return [_button('🔙 رجوع', 'back_to_settings', group_id)]


def _render_root(group_id: int, settings: dict) -> telebot.types.InlineKeyboardMarkup:
    keyboard = telebot.types.InlineKeyboardMarkup()
    for category, label in ROOT_ENTRIES:
        keyboard.row(_button(label, f"open_{category}", group_id))
    return keyboard


def _render_daily(group_id: int, settings: dict) -> telebot.types.InlineKeyboardMarkup:
    keyboard = telebot.types.InlineKeyboardMarkup()
    keyboard.row(_toggle_button('morning', group_id, settings))
    keyboard.row(*_time_row('morning', group_id, settings))
    keyboard.row(_toggle_button('evening', group_id, settings))
    keyboard.row(*_time_row('evening', group_id, settings))
    keyboard.row(*_back_row(group_id))
    return keyboard


def _render_periodic(group_id: int, settings: dict) -> telebot.types.InlineKeyboardMarkup:
    interval = settings['periodic_azkar']['interval_minutes']
    step = config.INTERVAL_STEP_MINUTES

    keyboard = telebot.types.InlineKeyboardMarkup()
    keyboard.row(_toggle_button('periodic', group_id, settings))
    keyboard.row(_button(f"⏱ الفاصل الزمني: {interval} دقيقة", 'open_periodic', group_id))
    keyboard.row(
        _button(f"➖ تقليل ({step} دقيقة)", 'interval_decrease', group_id),
        _button(f"➕ زيادة ({step} دقيقة)", 'interval_increase', group_id),
    )
    keyboard.row(*_back_row(group_id))
    return keyboard


def _render_friday(group_id: int, settings: dict) -> telebot.types.InlineKeyboardMarkup:
    keyboard = telebot.types.InlineKeyboardMarkup()
    keyboard.row(_toggle_button('friday', group_id, settings))
    keyboard.row(*_time_row('friday', group_id, settings))
    keyboard.row(_toggle_button('istijabah', group_id, settings))
    keyboard.row(*_back_row(group_id))
    return keyboard


def _toggle_list(*names) -> Callable[[int, dict], telebot.types.InlineKeyboardMarkup]:
    def render(group_id: int, settings: dict) -> telebot.types.InlineKeyboardMarkup:
        keyboard = telebot.types.InlineKeyboardMarkup()
        for name in names:
            keyboard.row(_toggle_button(name, group_id, settings))
        keyboard.row(*_back_row(group_id))
        return keyboard
    return render


def _render_ai(group_id: int, settings: dict) -> telebot.types.InlineKeyboardMarkup:
    keyboard = telebot.types.InlineKeyboardMarkup()
    keyboard.row(_toggle_button('ai', group_id, settings))
    keyboard.row(_button('💡 عن الذكاء الاصطناعي', 'ai_info', group_id))
    keyboard.row(*_back_row(group_id))
    return keyboard


def _render_timezone(group_id: int, settings: dict) -> telebot.types.InlineKeyboardMarkup:
    keyboard = telebot.types.InlineKeyboardMarkup()
    buttons = []
    for index, choice in enumerate(config.TIMEZONE_CHOICES):
        prefix = '✓ ' if choice['timezone'] == settings['timezone'] else ''
        buttons.append(_button(f"{prefix}{choice['arabic']}", f"set_tz_{index}", group_id))

    # Two per row
    for i in range(0, len(buttons), 2):
        keyboard.row(*buttons[i:i + 2])
    keyboard.row(*_back_row(group_id))
    return keyboard


RENDERERS: Dict[str, Callable[[int, dict], telebot.types.InlineKeyboardMarkup]] = {
    'root': _render_root,
    'daily': _render_daily,
    'periodic': _render_periodic,
    'friday': _render_friday,
    'ramadan': _toggle_list('ramadan', 'qadr', 'lastten'),
    'occasions': _toggle_list('arafat', 'eid', 'ashura', 'takbeer'),
    'audio': _toggle_list('quran_audio', 'azkar_audio'),
    'ai': _render_ai,
    'timezone': _render_timezone,
}


def render_menu(category: str, group_id: int, settings: dict) -> RenderedMenu:
    """
    Build the menu for a category from the group's current settings.

    Raises:
        UnknownAction: for an unknown category
    """
    renderer = RENDERERS.get(category)
    if renderer is None:
        raise UnknownAction(category)

    title = CATEGORY_TITLES[category]
    if category == 'timezone':
        title += f"\n\nالحالية: {settings['timezone']}"
    return RenderedMenu(category, title, renderer(group_id, settings))


def render_stats(group_id: int, store) -> RenderedMenu:
    """
    Statistics view: how many groups the bot serves and what this one has on.

    Built from the store rather than the group's record alone, so it is
    not one of RENDERERS.
    """
    settings = store.get(group_id)
    group_ids = store.group_ids()
    periodic_groups = sum(1 for gid in group_ids if store.find(gid)['periodic_azkar']['enabled'])

    enabled = [label for key, _, label in TOGGLES.values() if settings[key]['enabled']]
    last_sent = settings['last_periodic_sent_at']
    if last_sent is None:
        last_sent_text = 'لم يُرسل بعد'
    else:
        last_sent_text = last_sent.astimezone(get_group_timezone(settings)).strftime('%Y-%m-%d %H:%M')

    lines = [
        '📊 <b>الإحصائيات</b>',
        '',
        f"👥 المجموعات المسجلة: {len(group_ids)}",
        f"🔄 مجموعات الأذكار الدورية: {periodic_groups}",
        '',
        f"✅ الميزات المفعلة هنا: {len(enabled)} من {len(TOGGLES)}",
    ]
    lines.extend(f"  • {label}" for label in enabled)
    lines.extend([
        '',
        f"⏱ الفاصل الزمني: {settings['periodic_azkar']['interval_minutes']} دقيقة",
        f"⏰ المنطقة الزمنية: {settings['timezone']}",
        f"📨 آخر ذكر دوري: {last_sent_text}",
    ])

    keyboard = telebot.types.InlineKeyboardMarkup()
    keyboard.row(_button('🔄 تحديث', 'open_stats', group_id))
    keyboard.row(*_back_row(group_id))
    return RenderedMenu('stats', '\n'.join(lines), keyboard)


# =====================================================
# MUTATIONS
# =====================================================

def _toggle(store, group_id: int, name: str) -> MenuResult:
    key, parent, label = TOGGLES[name]

    def flip(settings):
        settings[key]['enabled'] = not settings[key]['enabled']

    settings = store.update(group_id, flip)
    enabled = settings[key]['enabled']
    logger.info(f"Group {group_id}: {key} {'enabled' if enabled else 'disabled'}")

    ack = f"✅ تم تفعيل {label}" if enabled else f"{DISABLED_MARK} تم إيقاف {label}"
    return MenuResult(render_menu(parent, group_id, settings), ack)


def _adjust_interval(store, group_id: int, delta: int) -> MenuResult:
    def adjust(settings):
        new_value = settings['periodic_azkar']['interval_minutes'] + delta
        if new_value < config.MIN_INTERVAL_MINUTES:
            raise InvalidAdjustment(new_value)
        settings['periodic_azkar']['interval_minutes'] = new_value

    try:
        settings = store.update(group_id, adjust)
    except InvalidAdjustment:
        menu = render_menu('periodic', group_id, store.get(group_id))
        return MenuResult(menu, f"⚠️ الحد الأدنى {config.MIN_INTERVAL_MINUTES} دقيقة", True)

    interval = settings['periodic_azkar']['interval_minutes']
    logger.info(f"Group {group_id}: periodic interval set to {interval} minutes")

    word = 'زيادة' if delta > 0 else 'تقليل'
    ack = f"✅ تم {word} الفاصل الزمني إلى {interval} دقيقة"
    return MenuResult(render_menu('periodic', group_id, settings), ack)


def _shift_time(store, group_id: int, name: str, minutes: int) -> MenuResult:
    key, parent, label = TIMED[name]

    def shift(settings):
        settings[key]['time'] = shift_time(settings[key]['time'], minutes)

    settings = store.update(group_id, shift)
    new_time = settings[key]['time']
    logger.info(f"Group {group_id}: {key} time set to {new_time}")
    return MenuResult(render_menu(parent, group_id, settings), f"⏰ {label}: {new_time}")


def _set_timezone(store, group_id: int, index: int) -> MenuResult:
    tz_name = config.TIMEZONE_CHOICES[index]['timezone']

    def set_tz(settings):
        settings['timezone'] = tz_name

    settings = store.update(group_id, set_tz)
    logger.info(f"Group {group_id}: timezone set to {tz_name}")
    return MenuResult(render_menu('timezone', group_id, settings), f"✅ {tz_name}")


# =====================================================
# DISPATCH
# =====================================================

def handle_action(action: str, acting_user_id: int, source_chat_id: int, store) -> MenuResult:
    """
    Apply a menu action and return what to render and how to acknowledge.

    Args:
        action: Callback data from the pressed button
        acting_user_id: Who pressed it (already verified as admin)
        source_chat_id: Chat the button was pressed in
        store: SettingsStore

    Returns:
        MenuResult: menu is None when nothing should be re-rendered
    """
    try:
        verb, group_id = parse_action(action)
    except UnknownAction:
        logger.debug(f"Ignoring unparsable action {action!r} from user {acting_user_id}")
        return MenuResult(None)

    logger.debug(f"Action {verb} for group {group_id} by user {acting_user_id} in {source_chat_id}")

    if verb.startswith('open_'):
        category = verb[len('open_'):]
        if category == 'stats':
            return MenuResult(render_stats(group_id, store))
        if category in RENDERERS:
            return MenuResult(render_menu(category, group_id, store.get(group_id)))

    elif verb == 'back_to_settings':
        return MenuResult(render_menu('root', group_id, store.get(group_id)))

    elif verb.startswith('toggle_'):
        name = verb[len('toggle_'):]
        if name in TOGGLES:
            return _toggle(store, group_id, name)

    elif verb == 'interval_increase':
        return _adjust_interval(store, group_id, config.INTERVAL_STEP_MINUTES)

    elif verb == 'interval_decrease':
        return _adjust_interval(store, group_id, -config.INTERVAL_STEP_MINUTES)

    elif verb.startswith('time_earlier_') or verb.startswith('time_later_'):
        direction, _, name = verb[len('time_'):].partition('_')
        if name in TIMED:
            step = config.TIME_STEP_MINUTES
            return _shift_time(store, group_id, name, step if direction == 'later' else -step)

    elif verb.startswith('set_tz_'):
        index = verb[len('set_tz_'):]
        if index.isdigit() and int(index) < len(config.TIMEZONE_CHOICES):
            return _set_timezone(store, group_id, int(index))

    elif verb == 'ai_info':
        return MenuResult(None, config.AI_INFO_MESSAGE, True)

    logger.debug(f"Unknown action {action!r} from user {acting_user_id}")
    return MenuResult(None)

# -*- coding: utf-8 -*-
"""
Azkar Group Bot - Bot Handlers Module
=====================================
Telegram command, callback and message handlers.

The settings menu is always delivered to the admin's private chat; the
target group id travels inside each button's callback data. Every
callback is checked against the target group's admin list here, before
menu_protocol sees it.

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""
import telebot

import config
from ai_responder import generate_reply, should_reply
from content_provider import fetch_reminder_set, format_azkar_message, pick_random
from errors import PermissionDenied, ProviderError, TransportError, UnknownAction
from logger_config import logger
from menu_protocol import handle_action, parse_action, render_menu
from notification_service import acknowledge, edit_menu, send_text
from settings_store import default_group_settings
from utils import require_admin

GROUP_TYPES = ('group', 'supergroup')

HELP_MESSAGE = """
🕌 <b>مساعدة - بوت الأذكار</b>

<b>الأوامر:</b>
/start - البداية
/settings - لوحة التحكم (للمدراء)
/azkar - ذكر عشوائي
/pdf - روابط المصحف PDF
/audio - روابط قرآن صوتية
/help - هذه الرسالة

📿 يرسل البوت أذكار الصباح والمساء، أذكاراً دورية، تذكير سورة الكهف يوم الجمعة،
وتذكيرات المناسبات (رمضان، عرفة، العيدين، عاشوراء) حسب إعدادات كل مجموعة.
"""

WELCOME_MESSAGE = """
🌟 <b>أهلاً بك في بوت الأذكار والقرآن الكريم</b> 🌟

📿 البوت يقدم:
• أذكار الصباح والمساء
• تذكير بسورة الكهف يوم الجمعة
• أذكار دورية قابلة للتخصيص
• أذكار المناسبات (رمضان، عرفة، الأعياد)
• إجابات مختصرة عن الأسئلة الدينية

🎛 للمدراء: استخدم /settings في المجموعة للتحكم
"""

GROUP_JOINED_MESSAGE = (
    "🕌 <b>جزاكم الله خيراً على إضافة البوت</b>\n\n"
    "سيتم إرسال الأذكار تلقائياً. يمكن للمدراء تعديل الإعدادات عبر /settings"
)

PANEL_OPENED_MESSAGE = "✅ تم فتح لوحة التحكم في الخاص"

PROVIDER_FALLBACK_MESSAGE = "عذراً، تعذر جلب الأذكار حالياً. حاول لاحقاً 🤲"


def _bot_username(bot: telebot.TeleBot) -> str:
    try:
        return bot.get_me().username
    except Exception as e:
        logger.warning(f"Could not fetch bot username: {e}")
        return ''


# =====================================================
# SETTINGS MENU
# =====================================================

def open_settings_menu(bot: telebot.TeleBot, store, message) -> bool:
    """
    Send the root settings menu to the user's private chat.

    From a group only admins get the menu; everybody else gets the
    refusal. If the bot can't message the user privately, the group is
    told to start a private chat first.

    Returns:
        bool: True if the menu was delivered
    """
    chat = message.chat
    user_id = message.from_user.id

    if chat.type in GROUP_TYPES:
        try:
            require_admin(bot, chat.id, user_id)
        except PermissionDenied as e:
            send_text(bot, chat.id, config.ADMIN_ONLY_MESSAGE, reply_to_message_id=message.message_id)
            logger.info(f"Refused settings menu: {e}")
            return False

    menu = render_menu('root', chat.id, store.get(chat.id))

    try:
        send_text(bot, user_id, menu.title, reply_markup=menu.keyboard)
    except TransportError:
        if chat.type in GROUP_TYPES:
            send_text(
                bot,
                chat.id,
                f"⚠️ عذراً، لا يمكنني مراسلتك في الخاص.\n"
                f"الرجاء بدء محادثة معي أولاً: @{_bot_username(bot)}",
                parse_mode=None
            )
        return False

    if chat.type in GROUP_TYPES:
        send_text(bot, chat.id, PANEL_OPENED_MESSAGE, reply_to_message_id=message.message_id)
    logger.info(f"Settings menu for {chat.id} sent to user {user_id}")
    return True


def handle_settings_callback(bot: telebot.TeleBot, store, call):
    """
    Handle a settings-menu button press.

    The callback is always answered exactly once, whatever happens.
    """
    ack_text, show_alert = None, False
    try:
        user_id = call.from_user.id
        chat_id = call.message.chat.id

        try:
            _, group_id = parse_action(call.data)
        except UnknownAction:
            logger.debug(f"Unknown callback {call.data!r} from user {user_id}")
            return

        try:
            require_admin(bot, group_id, user_id)
        except PermissionDenied as e:
            ack_text, show_alert = config.ADMIN_ONLY_MESSAGE, True
            logger.warning(f"{e}, refused {call.data!r}")
            return

        result = handle_action(call.data, user_id, chat_id, store)
        ack_text, show_alert = result.ack_text, result.show_alert

        if result.menu is not None:
            try:
                edit_menu(bot, chat_id, call.message.message_id, result.menu.title, result.menu.keyboard)
            except TransportError as e:
                logger.warning(f"Could not refresh menu for user {user_id}: {e}")

    except Exception as e:
        logger.error(f"Error in handle_settings_callback: {e}", exc_info=True)

    finally:
        try:
            acknowledge(bot, call.id, ack_text, show_alert)
        except TransportError as e:
            logger.debug(f"Callback {call.id} not acknowledged: {e}")


# =====================================================
# MESSAGES
# =====================================================

def handle_text_message(bot: telebot.TeleBot, store, message) -> bool:
    """
    Register groups as they talk and answer questions addressed to the bot.

    Returns:
        bool: True if a reply was sent
    """
    chat = message.chat
    text = message.text or ''

    if chat.type in GROUP_TYPES:
        settings = store.get(chat.id)
    else:
        settings = store.find(chat.id) or default_group_settings()

    replied_to_bot = bool(
        message.reply_to_message
        and message.reply_to_message.from_user
        and message.reply_to_message.from_user.is_bot
    )

    if not settings['ai_responses']['enabled'] or not should_reply(text, replied_to_bot):
        return False

    try:
        bot.send_chat_action(chat.id, 'typing')
        send_text(bot, chat.id, generate_reply(text), reply_to_message_id=message.message_id)
        return True
    except TransportError as e:
        logger.warning(f"AI reply to {chat.id} failed: {e}")
        return False


def send_random_azkar(bot: telebot.TeleBot, chat_id: int):
    """Send one random dhikr from the general collection."""
    try:
        items = fetch_reminder_set('general')
    except ProviderError as e:
        logger.warning(f"/azkar for {chat_id}: {e}")
        send_text(bot, chat_id, PROVIDER_FALLBACK_MESSAGE)
        return

    send_text(bot, chat_id, format_azkar_message(pick_random(items), 'ذكر'))


def format_pdf_links(username: str) -> str:
    """Numbered list of the PDF links, signed with the bot's handle."""
    lines = ['📚 <b>روابط PDF المتاحة</b>', '']
    for index, pdf in enumerate(config.PDF_RESOURCES, 1):
        lines.extend([f"{index}. {pdf['name']}", f"   {pdf['url']}", ''])
    lines.append(f"✨ @{username}")
    return '\n'.join(lines)


def format_audio_links(username: str) -> str:
    """Numbered list of recitation links, capped at MAX_AUDIO_LINKS."""
    resources = config.AUDIO_RESOURCES
    lines = ['🎵 <b>روابط قرآن صوتية</b>', '']
    for index, audio in enumerate(resources[:config.MAX_AUDIO_LINKS], 1):
        lines.extend([
            f"{index}. سورة {audio['surah']}",
            f"   القارئ: {audio['reciter']}",
            f"   {audio['url']}",
            '',
        ])
    if len(resources) > config.MAX_AUDIO_LINKS:
        lines.extend([f"<b>و {len(resources) - config.MAX_AUDIO_LINKS} سورة أخرى...</b>", ''])
    lines.append(f"✨ @{username}")
    return '\n'.join(lines)


# =====================================================
# HANDLERS REGISTRATION
# =====================================================

def register_handlers(bot: telebot.TeleBot, store):
    """
    Register all bot handlers with the bot instance.
    """

    @bot.message_handler(commands=['start'])
    def handle_start(message):
        """Handle /start: welcome in private, admin panel from groups."""
        try:
            if message.chat.type == 'private':
                keyboard = telebot.types.InlineKeyboardMarkup(row_width=1)
                keyboard.add(
                    telebot.types.InlineKeyboardButton(
                        '➕ إضافة البوت للمجموعة',
                        url=f"https://t.me/{_bot_username(bot)}?startgroup=true"
                    ),
                    telebot.types.InlineKeyboardButton('📖 دليل الاستخدام', callback_data='help')
                )
                send_text(bot, message.chat.id, WELCOME_MESSAGE, reply_markup=keyboard)
                logger.info(f"User {message.from_user.id} started the bot")
            else:
                open_settings_menu(bot, store, message)

        except Exception as e:
            logger.error(f"Error in handle_start: {e}", exc_info=True)


    @bot.message_handler(commands=['settings'])
    def handle_settings(message):
        """Handle /settings command."""
        try:
            open_settings_menu(bot, store, message)
        except Exception as e:
            logger.error(f"Error in handle_settings: {e}", exc_info=True)


    @bot.message_handler(commands=['help'])
    def handle_help(message):
        """Handle /help command."""
        try:
            send_text(bot, message.chat.id, HELP_MESSAGE)
        except Exception as e:
            logger.error(f"Error in handle_help: {e}", exc_info=True)


    @bot.message_handler(commands=['azkar'])
    def handle_azkar(message):
        """Handle /azkar command."""
        try:
            send_random_azkar(bot, message.chat.id)
        except Exception as e:
            logger.error(f"Error in handle_azkar: {e}", exc_info=True)


    @bot.message_handler(commands=['pdf'])
    def handle_pdf(message):
        """Handle /pdf command."""
        try:
            send_text(bot, message.chat.id, format_pdf_links(_bot_username(bot)))
        except Exception as e:
            logger.error(f"Error in handle_pdf: {e}", exc_info=True)


    @bot.message_handler(commands=['audio'])
    def handle_audio(message):
        """Handle /audio command."""
        try:
            send_text(bot, message.chat.id, format_audio_links(_bot_username(bot)))
        except Exception as e:
            logger.error(f"Error in handle_audio: {e}", exc_info=True)


    @bot.callback_query_handler(func=lambda call: call.data == 'help')
    def handle_help_callback(call):
        """Help button from the private welcome message."""
        try:
            send_text(bot, call.message.chat.id, HELP_MESSAGE)
        except Exception as e:
            logger.error(f"Error in handle_help_callback: {e}", exc_info=True)
        finally:
            try:
                acknowledge(bot, call.id)
            except TransportError as e:
                logger.debug(f"Help callback {call.id} not acknowledged: {e}")


    @bot.callback_query_handler(func=lambda call: True)
    def handle_menu_callback(call):
        handle_settings_callback(bot, store, call)


    @bot.my_chat_member_handler()
    def handle_membership(update):
        """Register a group as soon as the bot is added to it."""
        try:
            if update.chat.type not in GROUP_TYPES:
                return
            if update.new_chat_member.status in ('member', 'administrator'):
                store.get(update.chat.id)
                send_text(bot, update.chat.id, GROUP_JOINED_MESSAGE)
                logger.info(f"Bot added to group {update.chat.id}")
            elif update.new_chat_member.status in ('left', 'kicked'):
                logger.info(f"Bot removed from group {update.chat.id}")
        except Exception as e:
            logger.error(f"Error in handle_membership: {e}", exc_info=True)


    @bot.message_handler(content_types=['text'])
    def handle_text(message):
        try:
            handle_text_message(bot, store, message)
        except Exception as e:
            logger.error(f"Error in handle_text: {e}", exc_info=True)

    logger.info("Bot handlers registered")

# -*- coding: utf-8 -*-
"""
Azkar Group Bot - Configuration
===============================
Central configuration management for the entire application.

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""
import os
from typing import Dict, List, Any

# =====================================================
# ENVIRONMENT VARIABLES
# =====================================================

# Telegram Bot Configuration
BOT_TOKEN = os.getenv('BOT_TOKEN', '')

# Database Configuration (optional settings persistence)
DATABASE_PATH = os.getenv('DATABASE_PATH', 'azkar_bot.db')
PERSIST_SETTINGS = os.getenv('PERSIST_SETTINGS', 'false').lower() in ('1', 'true', 'yes')

# Environment
ENV = os.getenv('ENV', 'development')  # development | production

# =====================================================
# API CONFIGURATION
# =====================================================

# Azkar feeds per reminder category
AZKAR_SOURCES: Dict[str, str] = {
    'morning': 'https://ahegazy.github.io/muslimKit/json/azkar_sabah.json',
    'evening': 'https://ahegazy.github.io/muslimKit/json/azkar_massa.json',
    'post-prayer': 'https://ahegazy.github.io/muslimKit/json/PostPrayer_azkar.json',
    'general': 'https://raw.githubusercontent.com/rn0x/Adhkar-json/main/adhkar.json',
}
AZKAR_API_TIMEOUT = 10  # seconds

# Static media sent with Friday and Eid reminders
KAHF_PDF_URL = os.getenv('KAHF_PDF_URL', 'https://server.islamic.com/pdf/surah-kahf.pdf')
KAHF_AUDIO_URL = os.getenv('KAHF_AUDIO_URL', 'https://server8.mp3quran.net/afs/018.mp3')
TAKBEER_AUDIO_URL = os.getenv('TAKBEER_AUDIO_URL', 'https://server.islamic.com/audio/eid/takbeerat.mp3')

# Listed by /pdf and /audio
PDF_RESOURCES = [
    {'name': 'سورة الكهف', 'url': KAHF_PDF_URL},
]
AUDIO_RESOURCES = [
    {'surah': 'الفاتحة', 'reciter': 'مشاري العفاسي', 'url': 'https://server8.mp3quran.net/afs/001.mp3'},
    {'surah': 'الكهف', 'reciter': 'مشاري العفاسي', 'url': KAHF_AUDIO_URL},
    {'surah': 'يس', 'reciter': 'مشاري العفاسي', 'url': 'https://server8.mp3quran.net/afs/036.mp3'},
    {'surah': 'الملك', 'reciter': 'مشاري العفاسي', 'url': 'https://server8.mp3quran.net/afs/067.mp3'},
]
# /audio shows at most this many entries
MAX_AUDIO_LINKS = 10

# =====================================================
# API RETRY CONFIGURATION
# =====================================================

API_MAX_RETRIES = 3
API_RETRY_DELAY = 2  # seconds between retries
API_RETRY_BACKOFF = 2  # exponential backoff multiplier

# Telegram send retries
MAX_RETRIES = API_MAX_RETRIES
RETRY_DELAY = 1

# =====================================================
# SCHEDULER CONFIGURATION
# =====================================================

# Periodic azkar polling cadence
POLL_INTERVAL_SECONDS = int(os.getenv('POLL_INTERVAL_SECONDS', '60'))

# How long one group's send may run before the sweep stops waiting for it
DISPATCH_TIMEOUT_SECONDS = int(os.getenv('DISPATCH_TIMEOUT_SECONDS', '45'))

# Upper bound on one sweep; sends still queued after this keep running in the background
SWEEP_TIMEOUT_SECONDS = int(os.getenv('SWEEP_TIMEOUT_SECONDS', '55'))

# Worker threads shared by all sweeps
SCHEDULER_MAX_WORKERS = 10

# Periodic interval limits (minutes)
INTERVAL_STEP_MINUTES = 30
MIN_INTERVAL_MINUTES = 30

# Step used by the time buttons in the daily and friday menus
TIME_STEP_MINUTES = 30

# Number of azkar included in a morning/evening message
MAX_AZKAR_PER_MESSAGE = 10

# =====================================================
# CACHE CONFIGURATION
# =====================================================

AZKAR_CACHE_TTL = 6 * 3600  # 6 hours

# =====================================================
# LOGGING CONFIGURATION
# =====================================================

LOG_FILE = os.getenv('LOG_FILE', 'bot_debug.log')
LOG_LEVEL = os.getenv('LOG_LEVEL', '').upper()  # file handler level; empty picks one from ENV
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB per log file
LOG_BACKUP_COUNT = 5  # Keep 5 backup files
LOG_FORMAT_DETAILED = '%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s'
LOG_FORMAT_SIMPLE = '%(levelname)s: %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# =====================================================
# DATABASE CONFIGURATION
# =====================================================

DB_CACHE_SIZE = -2000  # 2MB cache
DB_SYNCHRONOUS = 'NORMAL'

# =====================================================
# GROUP SETTINGS DEFAULTS
# =====================================================

DEFAULT_TIMEZONE = 'Asia/Riyadh'

DEFAULT_GROUP_SETTINGS: Dict[str, Any] = {
    'morning_azkar': {'enabled': True, 'time': '06:00'},
    'evening_azkar': {'enabled': True, 'time': '17:00'},
    'periodic_azkar': {'enabled': True, 'interval_minutes': 120},
    'friday_reminder': {'enabled': True, 'time': '11:00'},
    'istijabah_hour': {'enabled': True},
    'ramadan_azkar': {'enabled': True},
    'arafat_day': {'enabled': True},
    'eid_reminders': {'enabled': True},
    'ashura_reminders': {'enabled': True},
    'lailatul_qadr': {'enabled': True},
    'last_ten_days': {'enabled': True},
    'eid_takbeer': {'enabled': True},
    'quran_audio': {'enabled': True},
    'azkar_audio': {'enabled': True},
    'ai_responses': {'enabled': True},
    'last_periodic_sent_at': None,
    'timezone': DEFAULT_TIMEZONE,
}

# =====================================================
# TIMEZONE CHOICES
# =====================================================

# Offered in the timezone menu (button index is carried in the callback data)
TIMEZONE_CHOICES: List[Dict[str, str]] = [
    {'arabic': 'الرياض / مكة', 'timezone': 'Asia/Riyadh'},
    {'arabic': 'القاهرة', 'timezone': 'Africa/Cairo'},
    {'arabic': 'الجزائر', 'timezone': 'Africa/Algiers'},
    {'arabic': 'الرباط', 'timezone': 'Africa/Casablanca'},
    {'arabic': 'تونس', 'timezone': 'Africa/Tunis'},
    {'arabic': 'عمّان', 'timezone': 'Asia/Amman'},
    {'arabic': 'بيروت', 'timezone': 'Asia/Beirut'},
    {'arabic': 'دمشق', 'timezone': 'Asia/Damascus'},
    {'arabic': 'بغداد', 'timezone': 'Asia/Baghdad'},
    {'arabic': 'الكويت', 'timezone': 'Asia/Kuwait'},
    {'arabic': 'الدوحة', 'timezone': 'Asia/Qatar'},
    {'arabic': 'دبي / أبوظبي', 'timezone': 'Asia/Dubai'},
    {'arabic': 'إسطنبول', 'timezone': 'Europe/Istanbul'},
    {'arabic': 'لندن', 'timezone': 'Europe/London'},
    {'arabic': 'نيويورك', 'timezone': 'America/New_York'},
]

# =====================================================
# OCCASION SCHEDULE
# =====================================================

# Fixed-clock occasion reminders: toggle key, oracle flag name, local time, message
OCCASION_SCHEDULE: List[Dict[str, str]] = [
    {
        'name': 'ramadan',
        'setting': 'ramadan_azkar',
        'flag': 'RAMADAN',
        'time': '04:00',
        'message': (
            '🌙 <b>أذكار رمضان</b>\n\n'
            'اللهم إنك عفو تحب العفو فاعفُ عنا\n'
            'اللهم أعنا على الصيام والقيام وتلاوة القرآن'
        ),
    },
    {
        'name': 'last_ten',
        'setting': 'last_ten_days',
        'flag': 'LAST_TEN_DAYS',
        'time': '21:00',
        'message': (
            '✨ <b>العشر الأواخر من رمضان</b>\n\n'
            'كان النبي ﷺ إذا دخل العشر شدّ مئزره وأحيا ليله وأيقظ أهله'
        ),
    },
    {
        'name': 'qadr',
        'setting': 'lailatul_qadr',
        'flag': 'LAILATUL_QADR',
        'time': '22:00',
        'message': (
            '🌌 <b>تحرّوا ليلة القدر</b>\n\n'
            'اللهم إنك عفو كريم تحب العفو فاعفُ عنا'
        ),
    },
    {
        'name': 'arafat',
        'setting': 'arafat_day',
        'flag': 'ARAFAT',
        'time': '08:00',
        'message': (
            '🕋 <b>يوم عرفة</b>\n\n'
            'خير الدعاء دعاء يوم عرفة\n'
            'لا إله إلا الله وحده لا شريك له، له الملك وله الحمد وهو على كل شيء قدير'
        ),
    },
    {
        'name': 'eid',
        'setting': 'eid_reminders',
        'flag': 'EID',
        'time': '07:00',
        'message': (
            '🎉 <b>عيد مبارك</b>\n\n'
            'تقبل الله منا ومنكم صالح الأعمال\n'
            'كل عام وأنتم بخير'
        ),
    },
    {
        'name': 'takbeer',
        'setting': 'eid_takbeer',
        'flag': 'TAKBEER',
        'time': '06:30',
        'message': (
            '📢 <b>تكبيرات العيد</b>\n\n'
            'الله أكبر الله أكبر، لا إله إلا الله\n'
            'الله أكبر الله أكبر ولله الحمد'
        ),
    },
    {
        'name': 'ashura',
        'setting': 'ashura_reminders',
        'flag': 'ASHURA',
        'time': '08:00',
        'message': (
            '📅 <b>يوم عاشوراء</b>\n\n'
            'صيام يوم عاشوراء أحتسب على الله أن يكفّر السنة التي قبله'
        ),
    },
    {
        'name': 'istijabah',
        'setting': 'istijabah_hour',
        'flag': 'FRIDAY',
        'time': '17:00',
        'message': (
            '🤲 <b>ساعة الاستجابة</b>\n\n'
            'في يوم الجمعة ساعة لا يوافقها عبد مسلم يسأل الله شيئاً إلا أعطاه إياه\n'
            'أكثروا من الدعاء في آخر ساعة من نهار الجمعة'
        ),
    },
]

# =====================================================
# MESSAGE TEXTS
# =====================================================

ADMIN_ONLY_MESSAGE = '⛔️ هذا الأمر متاح للمدراء فقط'

KAHF_REMINDER_MESSAGE = (
    '📖 <b>تذكير بقراءة سورة الكهف</b> 📖\n\n'
    '"مَنْ قَرَأَ سُورَةَ الكَهْفِ يَوْمَ الجُمُعَةِ أَضَاءَ لَهُ مِنَ النُّورِ مَا بَيْنَ الجُمُعَتَيْنِ"'
)

AI_INFO_MESSAGE = (
    'يجيب البوت عن الأسئلة الدينية العامة بإجابات مختصرة عند الرد على رسائله '
    'أو عند ذكر كلمات مثل: أذكار، قرآن، حديث، دعاء'
)

# =====================================================
# VALIDATION FUNCTIONS
# =====================================================

def validate_config() -> List[str]:
    """
    Validate all configuration on startup.

    Returns:
        List[str]: List of error messages (empty if valid)
    """
    errors: List[str] = []

    # 1. Validate BOT_TOKEN
    if not BOT_TOKEN or BOT_TOKEN == 'YOUR_BOT_TOKEN_HERE':
        errors.append("❌ BOT_TOKEN not set or using default value")
    elif len(BOT_TOKEN) < 30:
        errors.append(f"❌ BOT_TOKEN too short: {len(BOT_TOKEN)} characters")

    # 2. Validate DATABASE_PATH (only matters when persisting)
    if PERSIST_SETTINGS:
        db_dir = os.path.dirname(DATABASE_PATH)
        if db_dir and not os.path.exists(db_dir):
            try:
                os.makedirs(db_dir, exist_ok=True)
            except OSError as e:
                errors.append(f"❌ Database directory error: {e}")

    # 3. Validate API URLs
    for category, url in AZKAR_SOURCES.items():
        if not url.startswith('https://'):
            errors.append(f"❌ Azkar source for '{category}' must use HTTPS")

    # 4. Validate scheduler numbers
    if POLL_INTERVAL_SECONDS <= 0:
        errors.append("❌ POLL_INTERVAL_SECONDS must be positive")
    if DISPATCH_TIMEOUT_SECONDS <= 0:
        errors.append("❌ DISPATCH_TIMEOUT_SECONDS must be positive")
    if SWEEP_TIMEOUT_SECONDS < DISPATCH_TIMEOUT_SECONDS:
        errors.append("❌ SWEEP_TIMEOUT_SECONDS must not be shorter than DISPATCH_TIMEOUT_SECONDS")
    if DEFAULT_GROUP_SETTINGS['periodic_azkar']['interval_minutes'] % INTERVAL_STEP_MINUTES:
        errors.append("❌ Default periodic interval must be a multiple of the interval step")

    return errors


def is_valid_config() -> bool:
    """
    Quick check if configuration is valid.

    Returns:
        bool: True if configuration is valid
    """
    return len(validate_config()) == 0

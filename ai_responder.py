# -*- coding: utf-8 -*-
"""
Azkar Group Bot - Canned Answers
================================
Keyword-matched short answers to common religious questions.

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""
from typing import Dict

# Trigger word -> answer. Order matters: the first match wins.
RESPONSES: Dict[str, str] = {
    'أذكار': 'الأذكار من أعظم العبادات. تجدها في حصن المسلم وتشمل أذكار الصباح والمساء وأذكار النوم والاستيقاظ.',
    'قرآن': 'القرآن الكريم هو كلام الله المنزل على نبيه محمد ﷺ. قراءته عبادة عظيمة.',
    'دعاء': 'الدعاء مخ العبادة، وهو من أعظم القربات إلى الله تعالى.',
    'حديث': 'الحديث النبوي هو ما أُثر عن النبي محمد ﷺ من قول أو فعل أو تقرير.',
    'صلاة': 'الصلاة عماد الدين، وأول ما يحاسب عليه العبد يوم القيامة.',
    'صيام': 'الصيام جُنّة، وفي الجنة باب يقال له الريان لا يدخل منه إلا الصائمون.',
}

TRIGGER_WORDS = tuple(RESPONSES.keys())

FALLBACK_REPLY = (
    '🤖 أنا بوت الأذكار، أجيب عن الأسئلة العامة حول الأذكار والقرآن والدعاء والحديث.\n\n'
    'للفتوى يُرجى الرجوع إلى أهل العلم والمصادر الموثوقة.'
)


def should_reply(text: str, replied_to_bot: bool) -> bool:
    """True when a group message is addressed to the bot."""
    if not text or text.startswith('/'):
        return False
    return replied_to_bot or any(word in text for word in TRIGGER_WORDS)


def generate_reply(question: str) -> str:
    """
    Answer a free-text question.

    Args:
        question: Raw message text

    Returns:
        str: HTML reply (never empty)
    """
    text = (question or '').lower()
    for keyword, answer in RESPONSES.items():
        if keyword in text:
            return (
                f"🤖 <b>إجابة مختصرة:</b>\n\n{answer}\n\n"
                "<i>للمزيد من المعلومات، يمكنك البحث في المصادر الإسلامية الموثوقة.</i>"
            )
    return FALLBACK_REPLY

# -*- coding: utf-8 -*-
"""
Azkar Group Bot - Occasion Oracle
=================================
Reports which Islamic occasions fall on a given date.

Uses the Umm al-Qura calendar from hijridate. Local moon sighting can
differ from Umm al-Qura by a day in some countries; the calendar is the
single source of truth here.

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""
from datetime import date
from enum import Enum
from typing import FrozenSet, Optional

from hijridate import Gregorian, Hijri

from logger_config import logger


class OccasionFlag(Enum):
    RAMADAN = 'ramadan'
    LAST_TEN_DAYS = 'last_ten_days'
    LAILATUL_QADR = 'lailatul_qadr'
    ARAFAT = 'arafat'
    EID = 'eid'
    TAKBEER = 'takbeer'
    ASHURA = 'ashura'
    FRIDAY = 'friday'


# Hijri months
MUHARRAM = 1
RAMADAN = 9
SHAWWAL = 10
DHU_AL_HIJJAH = 12


def to_hijri(day: date) -> Optional[Hijri]:
    """
    Convert a Gregorian date to Umm al-Qura.

    Returns:
        Hijri or None when the date is outside the supported range
    """
    try:
        return Gregorian(day.year, day.month, day.day).to_hijri()
    except (OverflowError, ValueError):
        logger.warning(f"Date {day.isoformat()} is outside the Umm al-Qura range")
        return None


def current_occasions(day: date) -> FrozenSet[OccasionFlag]:
    """
    Occasions active on the given (local) date.

    Args:
        day: Date in the group's timezone

    Returns:
        frozenset of OccasionFlag
    """
    flags = set()

    # Monday is 0
    if day.weekday() == 4:
        flags.add(OccasionFlag.FRIDAY)

    hijri = to_hijri(day)
    if hijri is None:
        return frozenset(flags)

    month, mday = hijri.month, hijri.day

    if month == RAMADAN:
        flags.add(OccasionFlag.RAMADAN)
        # The last ten nights begin at sunset of the 20th
        if mday >= 20:
            flags.add(OccasionFlag.LAST_TEN_DAYS)
        if mday >= 21 and mday % 2 == 1:
            flags.add(OccasionFlag.LAILATUL_QADR)

    if month == DHU_AL_HIJJAH and mday == 9:
        flags.add(OccasionFlag.ARAFAT)

    if (month == SHAWWAL and mday == 1) or (month == DHU_AL_HIJJAH and mday == 10):
        flags.add(OccasionFlag.EID)

    # Eid al-Adha takbeer continues through the days of tashreeq
    if (month == SHAWWAL and mday == 1) or (month == DHU_AL_HIJJAH and 10 <= mday <= 13):
        flags.add(OccasionFlag.TAKBEER)

    if month == MUHARRAM and mday == 10:
        flags.add(OccasionFlag.ASHURA)

    return frozenset(flags)


def is_active(flag: OccasionFlag, day: date) -> bool:
    return flag in current_occasions(day)

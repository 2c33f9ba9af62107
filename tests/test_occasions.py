"""
Tests for the Hijri occasion oracle.
"""
from datetime import date

import pytest
from hijridate import Hijri

from occasions import OccasionFlag, current_occasions, is_active, to_hijri


def gregorian(year, month, day) -> date:
    g = Hijri(year, month, day).to_gregorian()
    return date(g.year, g.month, g.day)


def hijri_flags(day: date):
    return current_occasions(day) - {OccasionFlag.FRIDAY}


class TestConversion:

    def test_first_of_ramadan_1445(self):
        hijri = to_hijri(date(2024, 3, 11))

        assert (hijri.year, hijri.month, hijri.day) == (1445, 9, 1)

    def test_out_of_range_date_gives_none(self):
        assert to_hijri(date(1800, 1, 1)) is None

    def test_out_of_range_date_has_no_hijri_occasions(self):
        assert hijri_flags(date(1800, 1, 1)) == frozenset()


class TestRamadan:

    def test_start_of_ramadan(self):
        assert hijri_flags(date(2024, 3, 11)) == {OccasionFlag.RAMADAN}

    def test_nineteenth_is_not_last_ten(self):
        assert hijri_flags(gregorian(1445, 9, 19)) == {OccasionFlag.RAMADAN}

    def test_twentieth_starts_last_ten(self):
        assert hijri_flags(gregorian(1445, 9, 20)) == {OccasionFlag.RAMADAN, OccasionFlag.LAST_TEN_DAYS}

    @pytest.mark.parametrize('mday', [21, 23, 25, 27, 29])
    def test_odd_nights_are_qadr_candidates(self, mday):
        assert OccasionFlag.LAILATUL_QADR in current_occasions(gregorian(1445, 9, mday))

    @pytest.mark.parametrize('mday', [20, 22, 24, 26, 28])
    def test_even_nights_are_not_qadr_candidates(self, mday):
        flags = current_occasions(gregorian(1445, 9, mday))

        assert OccasionFlag.LAILATUL_QADR not in flags
        assert OccasionFlag.LAST_TEN_DAYS in flags


class TestEidAndHajj:

    def test_eid_al_fitr(self):
        assert hijri_flags(gregorian(1445, 10, 1)) == {OccasionFlag.EID, OccasionFlag.TAKBEER}

    def test_second_of_shawwal_is_ordinary(self):
        assert hijri_flags(gregorian(1445, 10, 2)) == frozenset()

    def test_arafat(self):
        assert hijri_flags(gregorian(1445, 12, 9)) == {OccasionFlag.ARAFAT}

    def test_eid_al_adha(self):
        assert hijri_flags(gregorian(1445, 12, 10)) == {OccasionFlag.EID, OccasionFlag.TAKBEER}

    @pytest.mark.parametrize('mday', [11, 12, 13])
    def test_takbeer_through_days_of_tashreeq(self, mday):
        assert hijri_flags(gregorian(1445, 12, mday)) == {OccasionFlag.TAKBEER}

    def test_takbeer_ends_after_thirteenth(self):
        assert hijri_flags(gregorian(1445, 12, 14)) == frozenset()


class TestOtherDays:

    def test_ashura(self):
        assert hijri_flags(gregorian(1446, 1, 10)) == {OccasionFlag.ASHURA}

    def test_ordinary_day(self):
        assert hijri_flags(gregorian(1445, 5, 5)) == frozenset()

    def test_friday(self):
        # 2024-03-15 is a Friday in Ramadan
        assert current_occasions(date(2024, 3, 15)) == {OccasionFlag.FRIDAY, OccasionFlag.RAMADAN}

    def test_is_active(self):
        assert is_active(OccasionFlag.RAMADAN, date(2024, 3, 11))
        assert not is_active(OccasionFlag.EID, date(2024, 3, 11))

    def test_result_is_deterministic(self):
        day = gregorian(1445, 9, 27)

        assert current_occasions(day) == current_occasions(day)
        assert all(isinstance(flag, OccasionFlag) for flag in current_occasions(day))
        assert current_occasions(day) <= frozenset(OccasionFlag)

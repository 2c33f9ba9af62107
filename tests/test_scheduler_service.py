"""
Tests for the azkar scheduler sweeps.

The Telegram client is a MagicMock; the provider and the occasion oracle
are injected so no test touches the network or the real calendar.
"""
import threading
import time
from concurrent.futures import Future
from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
import pytz

import config
from errors import ProviderError
from occasions import OccasionFlag
from scheduler_service import AzkarScheduler, due_fixed_triggers, is_periodic_due
from settings_store import default_group_settings
from tests.conftest import GROUP_ID, OTHER_GROUP_ID, telegram_error

# 2024-03-11 is a Monday; Asia/Riyadh is UTC+3 all year
MONDAY_NOON_UTC = datetime(2024, 3, 11, 12, 0, tzinfo=pytz.utc)
MONDAY_MORNING_RIYADH = datetime(2024, 3, 11, 3, 0, tzinfo=pytz.utc)
FRIDAY_KAHF_RIYADH = datetime(2024, 3, 15, 8, 0, tzinfo=pytz.utc)


def fake_azkar(category):
    return [{'text': f'{category} dhikr', 'repeat': 3}]


def texts_sent_to(bot, chat_id):
    return [c.args[1] for c in bot.send_message.call_args_list if c.args[0] == chat_id]


@pytest.fixture
def make_scheduler(fake_bot, store):
    created = []

    def factory(**kwargs):
        kwargs.setdefault('fetch_azkar', fake_azkar)
        kwargs.setdefault('occasions_for', lambda day: frozenset())
        kwargs.setdefault('dispatch_timeout', 5)
        scheduler = AzkarScheduler(fake_bot, store, **kwargs)
        created.append(scheduler)
        return scheduler

    yield factory

    for scheduler in created:
        scheduler.stop()


class TestEligibility:

    def test_morning_due_at_its_minute(self):
        settings = default_group_settings()

        assert due_fixed_triggers(settings, datetime(2024, 3, 11, 6, 0), frozenset()) == ['morning']
        assert due_fixed_triggers(settings, datetime(2024, 3, 11, 6, 1), frozenset()) == []

    def test_disabled_trigger_is_never_due(self):
        settings = default_group_settings()
        settings['morning_azkar']['enabled'] = False

        assert due_fixed_triggers(settings, datetime(2024, 3, 11, 6, 0), frozenset()) == []

    def test_friday_reminder_only_on_friday(self):
        settings = default_group_settings()

        assert due_fixed_triggers(settings, datetime(2024, 3, 15, 11, 0), frozenset()) == ['friday']
        assert due_fixed_triggers(settings, datetime(2024, 3, 14, 11, 0), frozenset()) == []

    def test_istijabah_follows_friday_flag(self):
        settings = default_group_settings()
        friday_evening = datetime(2024, 3, 15, 17, 0)

        assert due_fixed_triggers(settings, friday_evening, {OccasionFlag.FRIDAY}) == ['evening', 'istijabah']

    def test_occasion_needs_its_flag(self):
        settings = default_group_settings()
        pre_dawn = datetime(2024, 3, 11, 4, 0)

        assert due_fixed_triggers(settings, pre_dawn, frozenset()) == []
        assert due_fixed_triggers(settings, pre_dawn, {OccasionFlag.RAMADAN}) == ['ramadan']

    def test_periodic_never_sent_is_due(self):
        assert is_periodic_due(default_group_settings(), MONDAY_NOON_UTC)

    def test_periodic_waits_for_interval(self):
        settings = default_group_settings()
        settings['last_periodic_sent_at'] = MONDAY_NOON_UTC - timedelta(minutes=119)

        assert not is_periodic_due(settings, MONDAY_NOON_UTC)
        assert is_periodic_due(settings, MONDAY_NOON_UTC + timedelta(minutes=1))

    def test_disabled_periodic_is_never_due(self):
        settings = default_group_settings()
        settings['periodic_azkar']['enabled'] = False

        assert not is_periodic_due(settings, MONDAY_NOON_UTC)


class TestPeriodicSweep:

    def test_elapsed_interval_sends_and_records_time(self, make_scheduler, store, fake_bot):
        def configure(settings):
            settings['periodic_azkar']['interval_minutes'] = 60
            settings['last_periodic_sent_at'] = MONDAY_NOON_UTC - timedelta(minutes=90)

        store.update(GROUP_ID, configure)

        results = make_scheduler().run_periodic_sweep(MONDAY_NOON_UTC)

        assert results == {(GROUP_ID, 'periodic'): True}
        assert store.get(GROUP_ID)['last_periodic_sent_at'] == MONDAY_NOON_UTC
        assert 'post-prayer dhikr' in texts_sent_to(fake_bot, GROUP_ID)[0]

    def test_second_sweep_in_same_tick_sends_nothing(self, make_scheduler, store, fake_bot):
        store.get(GROUP_ID)
        scheduler = make_scheduler()

        scheduler.run_periodic_sweep(MONDAY_NOON_UTC)
        results = scheduler.run_periodic_sweep(MONDAY_NOON_UTC)

        assert results == {}
        assert fake_bot.send_message.call_count == 1

    def test_disabled_group_is_skipped(self, make_scheduler, store, fake_bot):
        store.update(GROUP_ID, lambda s: s['periodic_azkar'].update(enabled=False))

        assert make_scheduler().run_periodic_sweep(MONDAY_NOON_UTC) == {}
        fake_bot.send_message.assert_not_called()

    def test_provider_failure_is_isolated(self, make_scheduler, store, fake_bot):
        store.get(GROUP_ID)
        store.get(OTHER_GROUP_ID)
        lock = threading.Lock()
        calls = []

        def flaky_fetch(category):
            with lock:
                calls.append(category)
                first = len(calls) == 1
            if first:
                raise ProviderError(category, 'feed unreachable')
            return fake_azkar(category)

        results = make_scheduler(fetch_azkar=flaky_fetch).run_periodic_sweep(MONDAY_NOON_UTC)

        assert sorted(results.values()) == [False, True]
        delivered = [gid for (gid, _), ok in results.items() if ok][0]
        failed = [gid for (gid, _), ok in results.items() if not ok][0]
        assert store.get(delivered)['last_periodic_sent_at'] == MONDAY_NOON_UTC
        assert store.get(failed)['last_periodic_sent_at'] is None
        assert texts_sent_to(fake_bot, failed) == []

    def test_transport_failure_is_isolated(self, make_scheduler, store, fake_bot):
        store.get(GROUP_ID)
        store.get(OTHER_GROUP_ID)

        def send_message(chat_id, *args, **kwargs):
            if chat_id == GROUP_ID:
                raise telegram_error(403, 'Forbidden: bot was kicked from the group chat')
            return Mock()

        fake_bot.send_message.side_effect = send_message

        results = make_scheduler().run_periodic_sweep(MONDAY_NOON_UTC)

        assert results == {(GROUP_ID, 'periodic'): False, (OTHER_GROUP_ID, 'periodic'): True}
        assert store.get(GROUP_ID)['last_periodic_sent_at'] is None
        assert store.get(OTHER_GROUP_ID)['last_periodic_sent_at'] == MONDAY_NOON_UTC

    def test_slow_send_is_abandoned_and_not_resubmitted(self, make_scheduler, store):
        store.get(GROUP_ID)
        release = threading.Event()
        calls = []

        def slow_fetch(category):
            calls.append(category)
            release.wait(5)
            return fake_azkar(category)

        scheduler = make_scheduler(fetch_azkar=slow_fetch, dispatch_timeout=0.2)
        try:
            assert scheduler.run_periodic_sweep(MONDAY_NOON_UTC) == {}
            assert scheduler.run_periodic_sweep(MONDAY_NOON_UTC + timedelta(minutes=1)) == {}
            assert len(calls) == 1
        finally:
            release.set()


class TestFixedClockSweep:

    def test_morning_azkar_at_local_time(self, make_scheduler, store, fake_bot):
        store.get(GROUP_ID)

        results = make_scheduler().run_fixed_clock_sweep(MONDAY_MORNING_RIYADH)

        assert results == {(GROUP_ID, 'morning'): True}
        text = texts_sent_to(fake_bot, GROUP_ID)[0]
        assert 'morning dhikr' in text
        assert '🔢 التكرار: 3 مرة' in text

    def test_fires_once_per_local_date(self, make_scheduler, store, fake_bot):
        store.get(GROUP_ID)
        scheduler = make_scheduler()

        scheduler.run_fixed_clock_sweep(MONDAY_MORNING_RIYADH)
        assert scheduler.run_fixed_clock_sweep(MONDAY_MORNING_RIYADH) == {}

        # Moving the time later the same day doesn't fire it again
        store.update(GROUP_ID, lambda s: s['morning_azkar'].update(time='06:30'))
        assert scheduler.run_fixed_clock_sweep(MONDAY_MORNING_RIYADH + timedelta(minutes=30)) == {}

        next_day = MONDAY_MORNING_RIYADH + timedelta(days=1, minutes=30)
        assert scheduler.run_fixed_clock_sweep(next_day) == {(GROUP_ID, 'morning'): True}
        assert fake_bot.send_message.call_count == 2

    def test_group_timezone_is_respected(self, make_scheduler, store):
        store.update(GROUP_ID, lambda s: s.update(timezone='Africa/Cairo'))
        scheduler = make_scheduler()

        # Cairo is UTC+2 in March
        assert scheduler.run_fixed_clock_sweep(MONDAY_MORNING_RIYADH) == {}
        assert scheduler.run_fixed_clock_sweep(MONDAY_MORNING_RIYADH + timedelta(hours=1)) == {
            (GROUP_ID, 'morning'): True
        }

    def test_friday_sends_kahf_reminder_and_attachments(self, make_scheduler, store, fake_bot):
        store.get(GROUP_ID)

        results = make_scheduler().run_fixed_clock_sweep(FRIDAY_KAHF_RIYADH)

        assert results == {(GROUP_ID, 'friday'): True}
        assert texts_sent_to(fake_bot, GROUP_ID) == [config.KAHF_REMINDER_MESSAGE]
        documents = [c.args[1] for c in fake_bot.send_document.call_args_list]
        assert documents == [config.KAHF_PDF_URL, config.KAHF_AUDIO_URL]

    def test_friday_audio_follows_quran_audio_toggle(self, make_scheduler, store, fake_bot):
        store.update(GROUP_ID, lambda s: s['quran_audio'].update(enabled=False))

        make_scheduler().run_fixed_clock_sweep(FRIDAY_KAHF_RIYADH)

        documents = [c.args[1] for c in fake_bot.send_document.call_args_list]
        assert documents == [config.KAHF_PDF_URL]

    def test_failed_attachment_still_counts_as_delivered(self, make_scheduler, store, fake_bot):
        store.get(GROUP_ID)
        fake_bot.send_document.side_effect = telegram_error(400, 'Bad Request: wrong file identifier')

        results = make_scheduler().run_fixed_clock_sweep(FRIDAY_KAHF_RIYADH)

        assert results == {(GROUP_ID, 'friday'): True}

    def test_occasion_gated_by_oracle(self, make_scheduler, store, fake_bot):
        store.get(GROUP_ID)
        pre_dawn = datetime(2024, 3, 11, 1, 0, tzinfo=pytz.utc)

        assert make_scheduler().run_fixed_clock_sweep(pre_dawn) == {}

        results = make_scheduler(occasions_for=lambda day: {OccasionFlag.RAMADAN}).run_fixed_clock_sweep(pre_dawn)

        assert results == {(GROUP_ID, 'ramadan'): True}
        assert 'رمضان' in texts_sent_to(fake_bot, GROUP_ID)[0]

    def test_disabled_occasion_is_not_sent(self, make_scheduler, store, fake_bot):
        store.update(GROUP_ID, lambda s: s['ramadan_azkar'].update(enabled=False))
        pre_dawn = datetime(2024, 3, 11, 1, 0, tzinfo=pytz.utc)

        scheduler = make_scheduler(occasions_for=lambda day: {OccasionFlag.RAMADAN})

        assert scheduler.run_fixed_clock_sweep(pre_dawn) == {}
        fake_bot.send_message.assert_not_called()

    def test_takbeer_audio(self, make_scheduler, store, fake_bot):
        store.get(GROUP_ID)
        takbeer_time = datetime(2024, 6, 16, 3, 30, tzinfo=pytz.utc)

        results = make_scheduler(occasions_for=lambda day: {OccasionFlag.TAKBEER}).run_fixed_clock_sweep(takbeer_time)

        assert results == {(GROUP_ID, 'takbeer'): True}
        assert [c.args[1] for c in fake_bot.send_document.call_args_list] == [config.TAKBEER_AUDIO_URL]

    def test_slow_group_does_not_drop_queued_group(self, make_scheduler, store, fake_bot):
        store.get(GROUP_ID)
        store.get(OTHER_GROUP_ID)
        release = threading.Event()
        sent = []

        def send_message(chat_id, *args, **kwargs):
            sent.append(chat_id)
            if chat_id == GROUP_ID:
                release.wait(5)
            return Mock()

        fake_bot.send_message.side_effect = send_message
        scheduler = make_scheduler(dispatch_timeout=0.3, sweep_timeout=5, max_workers=1)
        unblock = threading.Timer(0.6, release.set)
        unblock.start()
        try:
            results = scheduler.run_fixed_clock_sweep(MONDAY_MORNING_RIYADH)
        finally:
            release.set()
            unblock.cancel()

        assert sent == [GROUP_ID, OTHER_GROUP_ID]
        assert results[(OTHER_GROUP_ID, 'morning')] is True
        assert (GROUP_ID, 'morning') not in results

    def test_queued_send_is_not_abandoned_by_others_deadline(self, make_scheduler, store, fake_bot):
        store.get(GROUP_ID)
        store.get(OTHER_GROUP_ID)

        def send_message(chat_id, *args, **kwargs):
            # Each send alone is well inside its deadline, together they are not
            time.sleep(0.3)
            return Mock()

        fake_bot.send_message.side_effect = send_message
        scheduler = make_scheduler(dispatch_timeout=0.5, sweep_timeout=5, max_workers=1)

        results = scheduler.run_fixed_clock_sweep(MONDAY_MORNING_RIYADH)

        assert results == {(GROUP_ID, 'morning'): True, (OTHER_GROUP_ID, 'morning'): True}

    def test_cancelled_send_gives_its_claim_back(self, make_scheduler, store):
        store.get(GROUP_ID)
        scheduler = make_scheduler()
        cancelled = Future()
        cancelled.cancel()

        assert scheduler._claim(GROUP_ID, 'morning', '2024-03-11')
        scheduler._release_if_cancelled(GROUP_ID, 'morning', '2024-03-11', cancelled)

        assert scheduler.run_fixed_clock_sweep(MONDAY_MORNING_RIYADH) == {(GROUP_ID, 'morning'): True}

    def test_finished_send_keeps_its_claim(self, make_scheduler, store):
        store.get(GROUP_ID)
        scheduler = make_scheduler()
        finished = Future()
        finished.set_result(True)

        assert scheduler._claim(GROUP_ID, 'morning', '2024-03-11')
        scheduler._release_if_cancelled(GROUP_ID, 'morning', '2024-03-11', finished)

        assert scheduler.run_fixed_clock_sweep(MONDAY_MORNING_RIYADH) == {}

    def test_provider_failure_skips_only_that_send(self, make_scheduler, store, fake_bot):
        store.get(GROUP_ID)

        def broken_fetch(category):
            raise ProviderError(category, 'feed unreachable')

        results = make_scheduler(fetch_azkar=broken_fetch).run_fixed_clock_sweep(MONDAY_MORNING_RIYADH)

        assert results == {(GROUP_ID, 'morning'): False}
        fake_bot.send_message.assert_not_called()


class TestLifecycle:

    def test_start_registers_both_sweeps(self, make_scheduler):
        scheduler = make_scheduler()
        scheduler.start()
        try:
            job_ids = {job.id for job in scheduler.scheduler.get_jobs()}
            assert job_ids == {'fixed_clock_sweep', 'periodic_sweep'}
        finally:
            scheduler.stop()

        assert not scheduler.scheduler.running

# -*- coding: utf-8 -*-
"""
Azkar Group Bot - Scheduler Service
===================================
Sweeps every known group on two APScheduler jobs:

- Fixed clock (every minute): morning/evening azkar, the Friday Kahf
  reminder and occasion reminders fire when the group's local HH:MM
  matches. Each (group, trigger) fires at most once per local date; a
  minute the process missed is not retried.
- Periodic (every POLL_INTERVAL_SECONDS): a random post-prayer dhikr
  once interval_minutes have passed since last_periodic_sent_at.

Sends run on a thread pool, one task per (group, trigger), so a slow or
failing group never holds up the others. Each send gets
DISPATCH_TIMEOUT_SECONDS from the moment it starts running; only sends
that overrun are abandoned. Sends queued behind them are still waited
for, up to SWEEP_TIMEOUT_SECONDS for the whole sweep.

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor as SendPool, wait
from datetime import datetime, timedelta
from functools import partial
from typing import Callable, Dict, List, Tuple

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

import config
from content_provider import fetch_reminder_set, format_azkar_message, pick_random
from errors import ProviderError, TransportError
from logger_config import logger
from notification_service import send_document, send_text
from occasions import OccasionFlag, current_occasions
from utils import get_group_timezone, utc_now

TITLES = {
    'morning': 'أذكار الصباح ☀️',
    'evening': 'أذكار المساء 🌙',
    'periodic': 'ذكر دوري 💚',
}

# Provider category per azkar trigger
AZKAR_CATEGORIES = {
    'morning': 'morning',
    'evening': 'evening',
    'periodic': 'post-prayer',
}

OCCASIONS_BY_NAME = {occasion['name']: occasion for occasion in config.OCCASION_SCHEDULE}

FRIDAY = 4  # datetime.weekday()

# How often a sweep rechecks running sends against their deadlines
COLLECT_POLL_SECONDS = 0.05


# =====================================================
# ELIGIBILITY
# =====================================================

def due_fixed_triggers(settings: dict, local_now: datetime, occasions) -> List[str]:
    """
    Fixed-clock triggers due for a group at this local minute.

    Args:
        settings: Group settings
        local_now: Current time in the group's timezone
        occasions: Occasion flags active on local_now's date

    Returns:
        List[str]: trigger names (morning, evening, friday, or an occasion name)
    """
    hhmm = local_now.strftime('%H:%M')
    due = []

    for name, key in (('morning', 'morning_azkar'), ('evening', 'evening_azkar')):
        if settings[key]['enabled'] and settings[key]['time'] == hhmm:
            due.append(name)

    friday = settings['friday_reminder']
    if local_now.weekday() == FRIDAY and friday['enabled'] and friday['time'] == hhmm:
        due.append('friday')

    for occasion in config.OCCASION_SCHEDULE:
        if (settings[occasion['setting']]['enabled']
                and occasion['time'] == hhmm
                and OccasionFlag[occasion['flag']] in occasions):
            due.append(occasion['name'])

    return due


def is_periodic_due(settings: dict, now: datetime) -> bool:
    """
    True when the periodic trigger should fire; a group that never
    received one is due immediately.
    """
    periodic = settings['periodic_azkar']
    if not periodic['enabled']:
        return False

    last_sent = settings.get('last_periodic_sent_at')
    if last_sent is None:
        return True
    return now - last_sent >= timedelta(minutes=periodic['interval_minutes'])


# =====================================================
# SCHEDULER
# =====================================================

class AzkarScheduler:
    """
    Owns the APScheduler instance and the send pool.

    Args:
        bot: TeleBot instance
        store: SettingsStore
        fetch_azkar: category -> azkar list, raises ProviderError
        occasions_for: date -> set of OccasionFlag
        clock: returns the current aware UTC datetime
        dispatch_timeout: seconds one send may run before it is abandoned
        sweep_timeout: seconds a sweep waits in total, queued sends included
        max_workers: send pool size
    """

    def __init__(self, bot, store,
                 fetch_azkar: Callable[[str], list] = fetch_reminder_set,
                 occasions_for: Callable = current_occasions,
                 clock: Callable[[], datetime] = utc_now,
                 dispatch_timeout: float = None,
                 sweep_timeout: float = None,
                 max_workers: int = None):
        self.bot = bot
        self.store = store
        self.fetch_azkar = fetch_azkar
        self.occasions_for = occasions_for
        self.clock = clock
        self.dispatch_timeout = config.DISPATCH_TIMEOUT_SECONDS if dispatch_timeout is None else dispatch_timeout
        self.sweep_timeout = config.SWEEP_TIMEOUT_SECONDS if sweep_timeout is None else sweep_timeout

        self._pool = SendPool(
            max_workers=max_workers or config.SCHEDULER_MAX_WORKERS,
            thread_name_prefix='azkar-send'
        )

        # (group_id, trigger) -> local date it last fired on
        self._fired: Dict[Tuple[int, str], str] = {}
        self._fired_lock = threading.Lock()

        # group_id -> last periodic send task
        self._periodic_tasks: Dict[int, Future] = {}

        self.scheduler = BackgroundScheduler(
            jobstores={'default': MemoryJobStore()},
            executors={'default': ThreadPoolExecutor(max_workers=2)},
            timezone='UTC',
            job_defaults={
                'coalesce': True,  # Combine overlapping runs
                'max_instances': 1,  # One sweep of each kind at a time
                'misfire_grace_time': 30
            }
        )

    # -------------------------------------------------
    # Sweeps
    # -------------------------------------------------

    def run_fixed_clock_sweep(self, now: datetime = None) -> Dict[Tuple[int, str], bool]:
        """
        Fire every fixed-clock trigger due at this minute.

        Returns:
            Dict: (group_id, trigger) -> delivered, for the tasks that finished
        """
        now = now or self.clock()
        tasks = []
        claimed_on: Dict[Tuple[int, str], str] = {}

        for group_id in self.store.group_ids():
            try:
                settings = self.store.get(group_id)
                local_now = now.astimezone(get_group_timezone(settings))
                local_date = local_now.date().isoformat()
                occasions = self.occasions_for(local_now.date())

                for trigger in due_fixed_triggers(settings, local_now, occasions):
                    if self._claim(group_id, trigger, local_date):
                        claimed_on[(group_id, trigger)] = local_date
                        tasks.append((group_id, trigger, partial(self._send_fixed, group_id, trigger)))
            except Exception as e:
                logger.error(f"Error evaluating fixed triggers for group {group_id}: {e}", exc_info=True)

        started: Dict[Tuple[int, str], float] = {}
        futures = self._submit(tasks, started)
        for future, key in futures.items():
            future.add_done_callback(partial(self._release_if_cancelled, key[0], key[1], claimed_on[key]))

        if tasks:
            logger.info(f"Fixed clock sweep: {len(tasks)} sends due")
        return self._collect(futures, started)

    def run_periodic_sweep(self, now: datetime = None) -> Dict[Tuple[int, str], bool]:
        """
        Send periodic azkar to every group whose interval has elapsed.

        Returns:
            Dict: (group_id, 'periodic') -> delivered, for the tasks that finished
        """
        now = now or self.clock()
        tasks = []

        for group_id in self.store.group_ids():
            try:
                previous = self._periodic_tasks.get(group_id)
                if previous is not None and not previous.done():
                    logger.debug(f"Periodic send for group {group_id} still in flight")
                    continue

                if is_periodic_due(self.store.get(group_id), now):
                    tasks.append((group_id, 'periodic', partial(self._send_periodic, group_id, now)))
            except Exception as e:
                logger.error(f"Error evaluating periodic azkar for group {group_id}: {e}", exc_info=True)

        started: Dict[Tuple[int, str], float] = {}
        futures = self._submit(tasks, started)
        for future, (group_id, _) in futures.items():
            self._periodic_tasks[group_id] = future

        if tasks:
            logger.info(f"Periodic sweep: {len(tasks)} sends due")
        return self._collect(futures, started)

    # -------------------------------------------------
    # Dispatch
    # -------------------------------------------------

    def _claim(self, group_id: int, trigger: str, local_date: str) -> bool:
        """Mark a fixed trigger as fired today; False if it already was."""
        key = (group_id, trigger)
        with self._fired_lock:
            if self._fired.get(key) == local_date:
                return False
            self._fired[key] = local_date
            return True

    def _submit(self, tasks, started: Dict[Tuple[int, str], float]) -> Dict[Future, Tuple[int, str]]:
        return {
            self._pool.submit(self._run_task, group_id, trigger, send, started): (group_id, trigger)
            for group_id, trigger, send in tasks
        }

    def _collect(self, futures: Dict[Future, Tuple[int, str]],
                 started: Dict[Tuple[int, str], float]) -> Dict[Tuple[int, str], bool]:
        """
        Wait for a sweep's sends.

        A send is abandoned once it has been running for dispatch_timeout;
        sends still queued behind slow ones are waited for, never cancelled.
        After sweep_timeout the sweep returns and whatever is left keeps
        going in the background.

        Returns:
            Dict: (group_id, trigger) -> delivered, for the sends that finished
        """
        results = {}
        pending = set(futures)
        give_up_at = time.monotonic() + self.sweep_timeout

        while pending:
            now = time.monotonic()
            for future in list(pending):
                key = futures[future]
                if future.done():
                    pending.discard(future)
                    if not future.cancelled():
                        results[key] = future.result()
                elif key in started and now - started[key] >= self.dispatch_timeout:
                    pending.discard(future)
                    logger.warning(f"Abandoned {key[1]} send for group {key[0]} after {self.dispatch_timeout}s")

            if not pending:
                break
            if now >= give_up_at:
                logger.warning(f"Sweep ended with {len(pending)} sends still queued or running")
                break
            wait(pending, timeout=COLLECT_POLL_SECONDS, return_when=FIRST_COMPLETED)

        return results

    def _release_if_cancelled(self, group_id: int, trigger: str, local_date: str, future: Future):
        """Give a cancelled fixed trigger back so a later sweep can fire it."""
        if not future.cancelled():
            return
        with self._fired_lock:
            if self._fired.get((group_id, trigger)) == local_date:
                del self._fired[(group_id, trigger)]
        logger.info(f"{trigger} send for group {group_id} was cancelled before it ran")

    def _run_task(self, group_id: int, trigger: str, send: Callable[[], None],
                  started: Dict[Tuple[int, str], float]) -> bool:
        started[(group_id, trigger)] = time.monotonic()
        try:
            send()
            logger.info(f"Sent {trigger} to group {group_id}")
            return True
        except ProviderError as e:
            logger.warning(f"Skipping {trigger} for group {group_id}: {e}")
        except TransportError as e:
            logger.warning(f"Could not deliver {trigger} to group {group_id}: {e}")
        except Exception as e:
            logger.error(f"Error sending {trigger} to group {group_id}: {e}", exc_info=True)
        return False

    # -------------------------------------------------
    # Sends
    # -------------------------------------------------

    def _send_azkar(self, group_id: int, trigger: str, random_one: bool = False):
        items = self.fetch_azkar(AZKAR_CATEGORIES[trigger])
        if random_one:
            items = pick_random(items)
        send_text(self.bot, group_id, format_azkar_message(items, TITLES[trigger]))

    def _send_periodic(self, group_id: int, now: datetime):
        self._send_azkar(group_id, 'periodic', random_one=True)

        def mark_sent(settings):
            settings['last_periodic_sent_at'] = now

        self.store.update(group_id, mark_sent)

    def _send_fixed(self, group_id: int, trigger: str):
        if trigger in AZKAR_CATEGORIES:
            self._send_azkar(group_id, trigger)
            return

        settings = self.store.get(group_id)

        if trigger == 'friday':
            send_text(self.bot, group_id, config.KAHF_REMINDER_MESSAGE)
            self._send_attachment(group_id, config.KAHF_PDF_URL, '📖 سورة الكهف - PDF')
            if settings['quran_audio']['enabled']:
                self._send_attachment(group_id, config.KAHF_AUDIO_URL, '🎧 سورة الكهف - تلاوة')
            return

        occasion = OCCASIONS_BY_NAME[trigger]
        send_text(self.bot, group_id, occasion['message'])
        if trigger == 'takbeer' and settings['azkar_audio']['enabled']:
            self._send_attachment(group_id, config.TAKBEER_AUDIO_URL, 'تكبيرات العيد 🎉')

    def _send_attachment(self, group_id: int, document: str, caption: str):
        # The text part already went out; a missing file shouldn't count as a failed send
        try:
            send_document(self.bot, group_id, document, caption=caption)
        except TransportError as e:
            logger.warning(f"Attachment for group {group_id} not sent: {e}")

    # -------------------------------------------------
    # Startup and shutdown
    # -------------------------------------------------

    def start(self):
        """Register both sweeps and start APScheduler."""
        self.scheduler.add_job(
            self.run_fixed_clock_sweep,
            trigger=CronTrigger(second=0, timezone='UTC'),
            id='fixed_clock_sweep',
            name='Fixed clock azkar sweep',
            replace_existing=True
        )
        self.scheduler.add_job(
            self.run_periodic_sweep,
            trigger=IntervalTrigger(seconds=config.POLL_INTERVAL_SECONDS),
            id='periodic_sweep',
            name='Periodic azkar sweep',
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(f"Scheduler started (periodic poll every {config.POLL_INTERVAL_SECONDS}s)")

    def stop(self):
        """Stop sweeping; in-flight sends finish or are dropped on their own."""
        logger.info("Stopping scheduler...")
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self._pool.shutdown(wait=False, cancel_futures=True)
        logger.info("Scheduler stopped")

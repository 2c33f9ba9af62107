# -*- coding: utf-8 -*-
"""
Azkar Group Bot - Settings Store
================================
Per-group settings records, created lazily with full defaults.

Concurrency model:
- One lock per group; updates for the same group are serialized,
  different groups never wait on each other.
- Updates are copy-on-write: the mutator runs on a private copy and the
  copy is published with a single reference swap, so readers always see
  a complete record and a failing mutator leaves nothing behind.
- Records returned by get() are snapshots and must not be mutated;
  use update() instead.

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""
import copy
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

import config
from logger_config import logger


def default_group_settings() -> Dict[str, Any]:
    """Fresh, fully populated settings record."""
    return copy.deepcopy(config.DEFAULT_GROUP_SETTINGS)


def _fill_missing(record: Dict[str, Any]) -> Dict[str, Any]:
    """Complete a stored record with defaults for keys it predates."""
    settings = default_group_settings()
    for key, value in record.items():
        if isinstance(value, dict) and isinstance(settings.get(key), dict):
            settings[key].update(value)
        elif key in settings:
            settings[key] = value
    return settings


class SettingsStore:
    """
    Keyed mapping from group id to its settings record.

    Args:
        persist: write every published record to sqlite (see database.py)
    """

    def __init__(self, persist: bool = False):
        self.persist = persist
        self._records: Dict[int, Dict[str, Any]] = {}
        self._locks: Dict[int, threading.Lock] = {}
        self._registry_lock = threading.Lock()

        if self.persist:
            from database import initialize_database, load_all_group_settings
            initialize_database()
            for chat_id, record in load_all_group_settings().items():
                self._records[chat_id] = _fill_missing(record)
                self._locks[chat_id] = threading.Lock()

    def _lock_for(self, group_id: int) -> threading.Lock:
        lock = self._locks.get(group_id)
        if lock is None:
            with self._registry_lock:
                lock = self._locks.setdefault(group_id, threading.Lock())
        return lock

    def _get_or_create(self, group_id: int) -> Tuple[Dict[str, Any], bool]:
        record = self._records.get(group_id)
        if record is not None:
            return record, False

        with self._registry_lock:
            record = self._records.get(group_id)
            if record is not None:
                return record, False
            record = default_group_settings()
            self._records[group_id] = record
            self._locks.setdefault(group_id, threading.Lock())

        logger.info(f"Created default settings for group {group_id}")
        return record, True

    def get(self, group_id: int) -> Dict[str, Any]:
        """
        Return the group's record, creating it with defaults on first access.
        Never fails.
        """
        record, created = self._get_or_create(group_id)
        if created:
            # Saved under the group lock so it can't land after a concurrent update
            with self._lock_for(group_id):
                if self._records.get(group_id) is record:
                    self._save(group_id, record)
        return record

    def update(self, group_id: int, mutator: Callable[[Dict[str, Any]], Any]) -> Dict[str, Any]:
        """
        Apply mutator to the group's record atomically and return the new record.

        Args:
            group_id: Target group
            mutator: Function receiving a mutable copy of the record

        Returns:
            Dict: The published record
        """
        with self._lock_for(group_id):
            current, created = self._get_or_create(group_id)
            if created:
                self._save(group_id, current)
            draft = copy.deepcopy(current)
            mutator(draft)
            self._records[group_id] = draft
            self._save(group_id, draft)

        return draft

    def group_ids(self) -> List[int]:
        """Snapshot of every known group id."""
        return list(self._records.keys())

    def find(self, group_id: int) -> Optional[Dict[str, Any]]:
        """Record if the group is known, without creating one."""
        return self._records.get(group_id)

    def __len__(self) -> int:
        return len(self._records)

    def _save(self, group_id: int, record: Dict[str, Any]):
        if not self.persist:
            return
        from database import save_group_settings
        save_group_settings(group_id, record)

# -*- coding: utf-8 -*-
"""
Azkar Group Bot - Database Module
=================================
Optional sqlite backing for group settings.

The settings store keeps every record in memory; when persistence is
enabled each published record is also written here as a JSON blob so a
restart can pick the groups back up.

- Thread-local connections (one connection per thread)
- WAL mode for concurrent read/write from scheduler and polling threads
- Context-managed transactions with auto-commit/rollback

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Any

import config
from logger_config import logger


# =====================================================
# DATABASE CONNECTION POOLING
# =====================================================

_local = threading.local()


def _get_thread_connection() -> sqlite3.Connection:
    """
    Get or create a connection for the current thread.
    """
    if getattr(_local, 'conn', None) is None:
        _local.conn = sqlite3.connect(config.DATABASE_PATH, check_same_thread=False)
        _local.conn.row_factory = sqlite3.Row

        _local.conn.execute('PRAGMA journal_mode=WAL')
        _local.conn.execute(f'PRAGMA synchronous={config.DB_SYNCHRONOUS}')
        _local.conn.execute(f'PRAGMA cache_size={config.DB_CACHE_SIZE}')

        logger.debug(f"Created new DB connection for thread {threading.current_thread().name}")

    return _local.conn


@contextmanager
def get_db_connection():
    """
    Context manager for database connections.

    Usage:
        with get_db_connection() as conn:
            conn.execute('SELECT * FROM group_settings')
    """
    conn = _get_thread_connection()

    try:
        conn.execute('BEGIN')
        yield conn
        conn.commit()
    except Exception as e:
        try:
            conn.rollback()
        except sqlite3.Error as rollback_error:
            logger.debug(f"Rollback failed on a broken connection: {rollback_error}")
        logger.error(f"Database transaction error: {e}", exc_info=False)
        raise


def close_all_connections():
    """
    Close the current thread's connection (call on shutdown).
    """
    if getattr(_local, 'conn', None) is not None:
        try:
            _local.conn.close()
            logger.info("Closed database connection for current thread")
        except sqlite3.Error as e:
            logger.error(f"Error closing DB connection: {e}", exc_info=False)
        _local.conn = None


# =====================================================
# DATABASE INITIALIZATION
# =====================================================

def initialize_database():
    """
    Create the settings table if it doesn't exist.
    """
    with get_db_connection() as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS group_settings (
                chat_id INTEGER PRIMARY KEY,
                settings_json TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')
    logger.info(f"Database ready at {config.DATABASE_PATH}")


# =====================================================
# SERIALIZATION
# =====================================================

def _encode_settings(settings: Dict[str, Any]) -> str:
    data = dict(settings)
    sent_at = data.get('last_periodic_sent_at')
    if isinstance(sent_at, datetime):
        data['last_periodic_sent_at'] = sent_at.isoformat()
    return json.dumps(data, ensure_ascii=False)


def _decode_settings(raw: str) -> Dict[str, Any]:
    data = json.loads(raw)
    sent_at = data.get('last_periodic_sent_at')
    if sent_at:
        data['last_periodic_sent_at'] = datetime.fromisoformat(sent_at)
    return data


# =====================================================
# GROUP SETTINGS
# =====================================================

def load_all_group_settings() -> Dict[int, Dict[str, Any]]:
    """
    Load every stored group record.

    Returns:
        Dict[int, Dict]: chat_id -> settings (may lack keys added in newer versions)
    """
    with get_db_connection() as conn:
        rows = conn.execute('SELECT chat_id, settings_json FROM group_settings').fetchall()

    records = {}
    for row in rows:
        try:
            records[row['chat_id']] = _decode_settings(row['settings_json'])
        except ValueError as e:
            logger.error(f"Skipping unreadable settings for group {row['chat_id']}: {e}")

    logger.info(f"Loaded settings for {len(records)} groups from database")
    return records


def save_group_settings(chat_id: int, settings: Dict[str, Any]) -> bool:
    """
    Upsert one group's settings.

    Returns:
        bool: True if saved
    """
    try:
        with get_db_connection() as conn:
            conn.execute('''
                INSERT INTO group_settings (chat_id, settings_json, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(chat_id) DO UPDATE SET
                    settings_json = excluded.settings_json,
                    updated_at = CURRENT_TIMESTAMP
            ''', (chat_id, _encode_settings(settings)))
        return True
    except sqlite3.Error as e:
        logger.error(f"Error saving settings for group {chat_id}: {e}", exc_info=False)
        return False

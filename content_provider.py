# -*- coding: utf-8 -*-
"""
Azkar Group Bot - Content Provider
==================================
Fetches azkar from the public JSON feeds and formats reminder messages.

- Retry with exponential backoff on rate limits, server errors and timeouts
- Small in-memory cache per category (the feeds are static files)
- Feed shapes are normalized to [{'text': ..., 'repeat': ...}]

Version: 2.1.0
Author: Azkar Bot Team
License: MIT
"""
import random
from html import escape
import threading
import time
from typing import Any, Dict, List, Optional

import requests

import config
from errors import ProviderError
from logger_config import logger


CATEGORIES = ('morning', 'evening', 'post-prayer', 'general')

# Key names used by the different feeds
_TEXT_KEYS = ('ARABIC', 'text', 'content', 'zekr')
_REPEAT_KEYS = ('REPEAT', 'count', 'repeat')
_LIST_KEYS = ('content', 'data', 'azkar', 'array')

# category -> (fetched_at, items)
_cache: Dict[str, tuple] = {}
_cache_lock = threading.Lock()


# =====================================================
# RETRY HELPER
# =====================================================

def retry_with_backoff(func, url: str, params: Dict = None, max_retries: int = None,
                       delay: int = None, backoff: int = None, timeout: int = None) -> Optional[Any]:
    """
    Execute a request with retry logic and exponential backoff.

    Args:
        func: Function to retry (requests.get)
        url: URL to request
        params: Query parameters
        max_retries: Maximum number of attempts
        delay: Initial delay between retries (seconds)
        backoff: Exponential backoff multiplier
        timeout: Request timeout (seconds)

    Returns:
        Parsed JSON or None if all retries failed
    """
    max_retries = config.API_MAX_RETRIES if max_retries is None else max_retries
    delay = config.API_RETRY_DELAY if delay is None else delay
    backoff = config.API_RETRY_BACKOFF if backoff is None else backoff
    timeout = config.AZKAR_API_TIMEOUT if timeout is None else timeout

    for attempt in range(max_retries):
        wait_time = delay * (backoff ** attempt)
        try:
            response = func(url, params=params, timeout=timeout)

            if response.status_code == 200:
                return response.json()
            elif response.status_code == 429:
                logger.warning(f"API rate limit hit (attempt {attempt + 1}), waiting {wait_time}s...")
            elif response.status_code >= 500:
                logger.warning(f"API server error {response.status_code} (attempt {attempt + 1}), waiting {wait_time}s...")
            else:
                logger.error(f"API request to {url} failed with status {response.status_code}")
                return None

        except requests.Timeout:
            logger.warning(f"API timeout (attempt {attempt + 1}), waiting {wait_time}s...")
        except requests.ConnectionError:
            logger.warning(f"API connection error (attempt {attempt + 1}), waiting {wait_time}s...")
        except ValueError as e:
            logger.error(f"API returned invalid JSON from {url}: {e}")
            return None

        if attempt < max_retries - 1:
            time.sleep(wait_time)

    logger.error(f"API request to {url} failed after {max_retries} attempts")
    return None


# =====================================================
# NORMALIZATION
# =====================================================

def _first(item: Dict[str, Any], keys) -> Any:
    for key in keys:
        if item.get(key):
            return item[key]
    return None


def normalize_azkar(data: Any) -> List[Dict[str, Any]]:
    """
    Turn any of the feed shapes into [{'text': str, 'repeat': int}].

    Unusable entries are dropped; an empty result means the feed is unusable.
    """
    if isinstance(data, dict):
        for key in _LIST_KEYS:
            if isinstance(data.get(key), list):
                data = data[key]
                break
        else:
            # {category_name: [...], ...}
            nested = [v for v in data.values() if isinstance(v, list)]
            data = [entry for group in nested for entry in group]

    if not isinstance(data, list):
        return []

    items = []
    for entry in data:
        if isinstance(entry, str):
            items.append({'text': entry.strip(), 'repeat': 1})
            continue
        if not isinstance(entry, dict):
            continue

        # [{'category': ..., 'array': [...]}, ...]
        nested = next((entry[k] for k in _LIST_KEYS if isinstance(entry.get(k), list)), None)
        if nested is not None:
            items.extend(normalize_azkar(nested))
            continue

        text = _first(entry, _TEXT_KEYS)
        if not isinstance(text, str) or not text.strip():
            continue

        try:
            repeat = int(_first(entry, _REPEAT_KEYS) or 1)
        except (TypeError, ValueError):
            repeat = 1

        items.append({'text': text.strip(), 'repeat': max(repeat, 1)})

    return items


# =====================================================
# PUBLIC INTERFACE
# =====================================================

def fetch_reminder_set(category: str) -> List[Dict[str, Any]]:
    """
    Ordered azkar for a category.

    Args:
        category: one of morning, evening, post-prayer, general

    Returns:
        List[Dict]: [{'text': str, 'repeat': int}, ...]

    Raises:
        ProviderError: unknown category, unreachable feed or unusable data
    """
    url = config.AZKAR_SOURCES.get(category)
    if url is None:
        raise ProviderError(category, 'unknown category')

    with _cache_lock:
        cached = _cache.get(category)
    if cached and time.time() - cached[0] < config.AZKAR_CACHE_TTL:
        logger.debug(f"Using cached azkar for {category} ({len(cached[1])} items)")
        return cached[1]

    try:
        data = retry_with_backoff(requests.get, url)
    except requests.RequestException as e:
        raise ProviderError(category, str(e)) from e

    if data is None:
        raise ProviderError(category, 'feed unreachable')

    items = normalize_azkar(data)
    if not items:
        raise ProviderError(category, 'feed returned no usable azkar')

    with _cache_lock:
        _cache[category] = (time.time(), items)

    logger.info(f"Fetched {len(items)} azkar for {category}")
    return items


def clear_cache():
    with _cache_lock:
        _cache.clear()


def pick_random(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [random.choice(items)] if items else []


def format_azkar_message(items: List[Dict[str, Any]], title: str,
                         limit: int = None) -> str:
    """
    Format azkar into an HTML message.

    Args:
        items: Normalized azkar
        title: Heading shown at the top
        limit: Maximum number of azkar to include

    Returns:
        str: Formatted HTML message
    """
    limit = config.MAX_AZKAR_PER_MESSAGE if limit is None else limit

    lines = [f"🌙 <b>{escape(title)}</b> 🌙", ""]
    for index, item in enumerate(items[:limit], start=1):
        lines.append(f"{index}. {escape(item['text'])}")
        if item.get('repeat', 1) > 1:
            lines.append(f"   🔢 التكرار: {item['repeat']} مرة")
        lines.append("")

    lines.append("📿 حصن المسلم")
    return "\n".join(lines)

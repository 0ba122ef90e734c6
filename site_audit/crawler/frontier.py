"""
Frontier: the shared, growing, deduplicated collection of crawl entries.
"""
from __future__ import annotations

import threading
from typing import Dict, Iterator, List, Optional, Tuple

from site_audit.crawler.classifier import normalize_url
from site_audit.crawler.models import CrawlEntry, UrlType

__all__ = ("Frontier",)


class Frontier:
    """
    Entries keyed by normalized URL, kept in creation order.

    Get-or-create and back-reference updates run under a lock, so concurrent
    discoverers of the same URL always end up with one shared entry.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, CrawlEntry] = {}
        self._lock = threading.Lock()

    def try_add(self, url: str, url_type: UrlType) -> Tuple[CrawlEntry, bool]:
        """Return the entry for *url*, creating it if needed, and whether it is new."""
        key = normalize_url(url)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                return entry, False
            entry = CrawlEntry(key, url_type)
            self._entries[key] = entry
            return entry, True

    def add_reference(self, entry: CrawlEntry, origin_url: str) -> bool:
        """Record that *origin_url* links to *entry*; False if already known."""
        with self._lock:
            if origin_url in entry.linked_from:
                return False
            entry.linked_from.append(origin_url)
            return True

    def get(self, url: str) -> Optional[CrawlEntry]:
        return self._entries.get(normalize_url(url))

    def unprocessed_snapshot(self) -> List[CrawlEntry]:
        """Point-in-time copy of entries not yet processed."""
        with self._lock:
            return [e for e in self._entries.values() if not e.processed]

    def entries(self) -> List[CrawlEntry]:
        with self._lock:
            return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CrawlEntry]:
        return iter(self.entries())

    def __contains__(self, url: object) -> bool:
        return isinstance(url, str) and normalize_url(url) in self._entries

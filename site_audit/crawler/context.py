"""
Per-run crawl context: configuration, frontier and cancellation token.
"""
from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern
from urllib.parse import urlsplit

from site_audit.config import CrawlConfig
from site_audit.crawler.classifier import LinkOrigin, classify
from site_audit.crawler.frontier import Frontier
from site_audit.crawler.models import CrawlEntry

__all__ = ("CrawlContext", "SkipRules")


@dataclass(frozen=True, slots=True)
class SkipRules:
    """Pre-fetch exclusion by URL type, domain or regex."""

    url_types: frozenset
    domains: frozenset
    patterns: tuple[Pattern[str], ...]

    @classmethod
    def from_config(cls, config: CrawlConfig) -> SkipRules:
        return cls(
            url_types=frozenset(config.skip_url_types),
            domains=frozenset(config.skip_domains),
            patterns=tuple(re.compile(p, re.IGNORECASE) for p in config.skip_patterns),
        )

    def matches(self, entry: CrawlEntry) -> bool:
        if entry.url_type in self.url_types:
            return True
        host = (urlsplit(entry.url).hostname or "").lower()
        if host in self.domains:
            return True
        return any(p.search(entry.url) for p in self.patterns)


@dataclass
class CrawlContext:
    """Everything one crawl run shares between scheduler, executor and extractor."""

    config: CrawlConfig
    frontier: Frontier = field(default_factory=Frontier)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    internal_domains: frozenset = field(init=False)
    skip_rules: SkipRules = field(init=False)

    def __post_init__(self) -> None:
        self.internal_domains = frozenset(self.config.internal_domains)
        self.skip_rules = SkipRules.from_config(self.config)

    @classmethod
    def create(cls, config: CrawlConfig, cancel_event: Optional[asyncio.Event] = None) -> CrawlContext:
        """Build a context and seed its frontier."""
        ctx = cls(config=config, cancel_event=cancel_event or asyncio.Event())
        ctx.seed(config.seed_urls)
        return ctx

    def seed(self, urls: List[str]) -> List[CrawlEntry]:
        entries = []
        for url in urls:
            entry, _ = self.frontier.try_add(url, classify(url, LinkOrigin.SEED, self.internal_domains))
            entries.append(entry)
        return entries

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

"""
SiteAudit crawl engine: frontier, classifier, request executor and scheduler.
"""
from site_audit.crawler.classifier import LinkOrigin, classify, normalize_url
from site_audit.crawler.frontier import Frontier
from site_audit.crawler.models import CrawlEntry, ErrorKind, UrlType

__all__ = [
    "CrawlEntry",
    "ErrorKind",
    "Frontier",
    "LinkOrigin",
    "UrlType",
    "classify",
    "normalize_url",
]

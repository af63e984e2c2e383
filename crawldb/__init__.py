"""Seed a crawl frontier (CrawlDB) with URLs, redirects and fetched documents."""

from .errors import InjectionError, InjectorError, InvalidUrlError, SetupError
from .injector import Injector
from .keys import reverse_url, unreverse_url
from .record import CrawlStatus, FrontierRecord, OverrideKeys

__all__ = [
    "CrawlStatus",
    "FrontierRecord",
    "InjectionError",
    "Injector",
    "InjectorError",
    "InvalidUrlError",
    "OverrideKeys",
    "SetupError",
    "reverse_url",
    "unreverse_url",
]

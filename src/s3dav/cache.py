from collections import OrderedDict
from s3dav.interfaces import ICacheInvalidator
from s3dav.interfaces import IListingCache
from s3dav.paths import listing_urls
from urllib.parse import quote
from zope.interface import implementer

import httpx
import logging
import threading
import time


logger = logging.getLogger(__name__)

# One week, the edge TTL the listings were originally cached with.
DEFAULT_TTL = 604800


@implementer(IListingCache)
class ListingCache:
    """In-process cache for rendered collection listings.

    Entries are keyed by the listing URL they were served under (``/``,
    ``/a/b``, ``/dav/a/b``) and expire after ``ttl`` seconds.  When more
    than ``max_entries`` are held, the oldest insertions are dropped first.

    Evicting a collection drops the listings of all its ancestors as well,
    since a new or removed key deeper down adds or removes a folder entry in
    each of them.  Every eviction bumps a per-URL generation, and
    :meth:`put_if_current` refuses a body rendered before the last eviction.
    """

    def __init__(self, ttl=DEFAULT_TTL, max_entries=1024, clock=time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries = OrderedDict()  # {url: (expires_at, body)}
        self._generations = {}  # {url: evictions so far}
        self._lock = threading.Lock()

    def get(self, url):
        with self._lock:
            entry = self._entries.get(url)
            if entry is None:
                return None
            expires_at, body = entry
            if expires_at <= self._clock():
                del self._entries[url]
                return None
            return body

    def generation(self, url):
        with self._lock:
            return self._generations.get(url, 0)

    def _store(self, url, body):
        self._entries.pop(url, None)
        self._entries[url] = (self._clock() + self.ttl, body)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def put(self, url, body):
        with self._lock:
            self._store(url, body)

    def put_if_current(self, url, generation, body):
        with self._lock:
            if self._generations.get(url, 0) != generation:
                logger.debug("Dropped stale listing for %s", url)
                return False
            self._store(url, body)
            return True

    def evict(self, url):
        urls = listing_urls(url)
        with self._lock:
            for stale in urls:
                self._entries.pop(stale, None)
                self._generations[stale] = self._generations.get(stale, 0) + 1
        logger.debug("Evicted listing cache for %s and its ancestors", url)

    def __len__(self):
        with self._lock:
            return len(self._entries)


@implementer(ICacheInvalidator)
class PurgeInvalidator:
    """Evicts listings from an HTTP edge cache (Varnish, CDN) with PURGE.

    ``base_url`` is the public origin the edge caches, e.g.
    ``https://files.example.com``.  A 404 from the edge means the entry was
    not cached, which counts as a successful eviction.  Like
    :class:`ListingCache`, evicting a collection purges its ancestors too.
    """

    def __init__(self, base_url, timeout=10.0, transport=None):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def purge_url(self, url):
        return self.base_url + quote(url, safe="/")

    def evict(self, url):
        for stale in listing_urls(url):
            response = self._client.request("PURGE", self.purge_url(stale))
            if response.status_code != 404:
                response.raise_for_status()
        logger.debug("Purged %s and its ancestors from edge cache", url)

    def close(self):
        self._client.close()


def _evict_quietly(invalidator, url):
    try:
        invalidator.evict(url)
    except Exception:
        logger.warning("Failed to evict cached listing for %s", url, exc_info=True)


def evict_later(background_tasks, invalidator, url):
    """Schedule eviction of ``url`` to run after the response is sent.

    The task is not awaited by the handler; failures are logged and never
    change the response.
    """
    background_tasks.add_task(_evict_quietly, invalidator, url)

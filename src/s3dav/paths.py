"""Resource path handling.

Every path that reaches the object store goes through :func:`canonicalize`
first.  Listing paths are normalized with :func:`collection_path`, and the
cache invalidation policy addresses listings by the URL returned from
:func:`parent_collection`.
"""

from s3dav.errors import InvalidPath
from urllib.parse import unquote

import re


ROOT = "/"
DAV_MOUNT = "/dav"

# A path that still carries escapes after one decoding pass was encoded twice.
_ESCAPE_RE = re.compile(r"%[0-9A-Fa-f]{2}")


def _check(path):
    if ".." in path:
        raise InvalidPath(f"path must not contain '..': {path!r}")
    if _ESCAPE_RE.search(path):
        raise InvalidPath(f"path is percent-encoded more than once: {path!r}")


def canonicalize(raw_path, decode=True):
    """Turn a raw request path into a storage key.

    The path is percent-decoded once (unless ``decode`` is false), checked
    for traversal and stripped of leading slashes.  Raises InvalidPath for
    blank paths, paths containing ``..`` and the bare root.
    """
    path = unquote(raw_path) if decode else raw_path
    if not path.strip():
        raise InvalidPath("path is empty")
    _check(path)
    key = path.lstrip("/")
    if not key:
        raise InvalidPath("the root collection is not a file")
    return key


def collection_path(raw_path):
    """Normalize a listing path to ``/`` or ``/a/b`` (no trailing slash)."""
    path = unquote(raw_path)
    _check(path)
    path = "/" + path.lstrip("/")
    if path != ROOT:
        path = path.rstrip("/") or ROOT
    return path


def collection_prefix(collection):
    """Return the store prefix listing the members of ``collection``."""
    if collection == ROOT:
        return ""
    return collection.lstrip("/") + "/"


def parent_collection(key):
    """Return the listing URL of the collection holding ``key``.

    A folder marker like ``a/b/`` belongs to ``/a``, where ``b/`` is listed.
    """
    stripped = key.rstrip("/")
    if "/" not in stripped:
        return ROOT
    return "/" + stripped[: stripped.rindex("/")]


def display_name(path):
    """Last non-empty segment of a ``/``-delimited path, ``None`` for root."""
    segments = [s for s in path.split("/") if s]
    return segments[-1] if segments else None


def mounted_url(collection, mount=""):
    """URL of ``collection`` as served under ``mount`` (``/dav``, ``/dav/a``)."""
    if not mount:
        return collection
    if collection == ROOT:
        return mount
    return mount + collection


def ancestors(collection):
    """``collection`` followed by each enclosing collection up to the root."""
    chain = [collection]
    while collection != ROOT:
        collection = collection[: collection.rindex("/")] or ROOT
        chain.append(collection)
    return chain


def listing_urls(collection):
    """Every listing URL a change inside ``collection`` can make stale.

    Deeper keys show up as folders in every enclosing listing, so all
    ancestors are included, each in its plain and its ``/dav`` form.
    """
    urls = []
    for url in ancestors(collection):
        urls.append(url)
        urls.append(mounted_url(url, DAV_MOUNT))
    return urls

from fastapi.responses import JSONResponse
from fastapi.responses import PlainTextResponse
from fastapi.responses import Response
from s3dav.cache import DEFAULT_TTL
from s3dav.cache import evict_later
from s3dav.errors import InvalidPath
from s3dav.interfaces import IListingCache
from s3dav.listing import immediate_children
from s3dav.listing import render
from s3dav.listing import render_error
from s3dav.paths import canonicalize
from s3dav.paths import collection_path
from s3dav.paths import collection_prefix
from s3dav.paths import DAV_MOUNT
from s3dav.paths import mounted_url
from s3dav.paths import parent_collection
from s3dav.paths import ROOT
from s3dav.uploads import file_fields
from starlette.concurrency import run_in_threadpool
from urllib.parse import quote

import logging
import mimetypes


logger = logging.getLogger(__name__)

DAV_ENTRY_POINT = DAV_MOUNT
DAV_HEADERS = {"DAV": "1, 2"}
ALLOW = "OPTIONS, GET, HEAD, PUT, DELETE, POST, PROPFIND"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
MULTISTATUS_TYPE = "application/xml; charset=utf-8"


def content_type_for(key):
    """Content type by file extension, case-insensitive."""
    name = key.rsplit("/", 1)[-1]
    if "." not in name:
        return DEFAULT_CONTENT_TYPE
    extension = "." + name.rsplit(".", 1)[-1].lower()
    return mimetypes.types_map.get(extension, DEFAULT_CONTENT_TYPE)


def content_disposition(key):
    name = key.rsplit("/", 1)[-1]
    fallback = name.encode("ascii", "replace").decode("ascii").replace('"', "")
    value = f'inline; filename="{fallback}"'
    if fallback != name:
        value += f"; filename*=UTF-8''{quote(name)}"
    return value


def _list_all(store, prefix):
    return list(store.list_objects(prefix))


def _invalid_path():
    return PlainTextResponse("Invalid path", status_code=400)


class Handlers:
    """Request handlers for the gateway.

    ``store`` provides IObjectStore and ``cache`` ICacheInvalidator.  If the
    cache also provides IListingCache, rendered listings are served from and
    stored into it.  Handlers keep no per-request state and may be shared by
    concurrent requests.
    """

    def __init__(self, store, cache, cache_ttl=DEFAULT_TTL):
        self._store = store
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._listing_cache = cache if IListingCache.providedBy(cache) else None

    async def fetch_object(self, path):
        if path == ROOT:
            return PlainTextResponse(
                "Use /dav for WebDAV",
                status_code=302,
                headers={"Location": DAV_ENTRY_POINT},
            )
        try:
            key = canonicalize(path)
        except InvalidPath:
            return _invalid_path()
        try:
            obj = await run_in_threadpool(self._store.get_object, key)
        except Exception as e:
            logger.exception("Fetching %s failed", key)
            return PlainTextResponse(f"Failed to fetch file: {e}", status_code=500)
        if obj is None:
            return PlainTextResponse("File not found", status_code=404)
        return Response(
            obj.content,
            media_type=content_type_for(key),
            headers={"Content-Disposition": content_disposition(key)},
        )

    async def store_object(self, path, content, background):
        try:
            key = canonicalize(path)
        except InvalidPath:
            return _invalid_path()
        content_type = content_type_for(key)
        try:
            await run_in_threadpool(self._store.put_object, key, content, content_type)
        except Exception as e:
            logger.exception("Storing %s failed", key)
            return PlainTextResponse(f"Failed to upload file: {e}", status_code=500)
        logger.info("Stored %s (%d bytes, %s)", key, len(content), content_type)
        evict_later(background, self._cache, parent_collection(key))
        return PlainTextResponse("File uploaded successfully", status_code=201)

    async def delete_object(self, path, background):
        try:
            key = canonicalize(path)
        except InvalidPath:
            return _invalid_path()
        try:
            await run_in_threadpool(self._store.delete_object, key)
        except Exception as e:
            logger.exception("Deleting %s failed", key)
            return PlainTextResponse(f"Failed to delete file: {e}", status_code=500)
        logger.info("Deleted %s", key)
        evict_later(background, self._cache, parent_collection(key))
        return PlainTextResponse("File deleted successfully")

    async def bulk_upload(self, parts, background):
        """Store every file part of a multipart form.

        A file name containing '..' rejects the whole request before anything
        is stored.  Otherwise each file succeeds or fails on its own and the
        outcome of every file is reported.
        """
        files = file_fields(parts)
        if any(".." in part.filename for part in files):
            return _invalid_path()

        results = []
        for part in files:
            try:
                key = canonicalize(part.filename, decode=False)
            except InvalidPath:
                results.append(
                    {
                        "filename": part.filename,
                        "status": "failed",
                        "error": "Invalid filename",
                    }
                )
                continue
            content_type = content_type_for(key)
            try:
                await run_in_threadpool(
                    self._store.put_object, key, part.content, content_type
                )
            except Exception as e:
                logger.warning("Bulk upload of %s failed: %s", key, e)
                results.append({"filename": key, "status": "failed", "error": str(e)})
                continue
            logger.info("Stored %s (%d bytes, %s)", key, len(part.content), content_type)
            results.append(
                {"filename": key, "status": "success", "contentType": content_type}
            )
            evict_later(background, self._cache, parent_collection(key))
        return JSONResponse(results)

    async def list_collection(self, path, mount=""):
        """Render the listing of ``path``.

        ``mount`` is the URL prefix the listing was requested under; hrefs
        are rendered below it so they match the URL the client asked for.
        """
        try:
            collection = collection_path(path)
        except InvalidPath:
            return _invalid_path()
        url = mounted_url(collection, mount)

        generation = None
        if self._listing_cache is not None:
            body = self._listing_cache.get(url)
            if body is not None:
                logger.debug("Listing cache hit for %s", url)
                return self._multistatus(body)
            generation = self._listing_cache.generation(url)

        prefix = collection_prefix(collection)
        try:
            summaries = await run_in_threadpool(_list_all, self._store, prefix)
            body = render(collection, immediate_children(prefix, summaries), mount)
        except Exception as e:
            logger.exception("Listing %s failed", collection)
            return Response(
                render_error(str(e)), status_code=500, media_type="application/xml"
            )

        if self._listing_cache is not None:
            self._listing_cache.put_if_current(url, generation, body)
        return self._multistatus(body)

    def _multistatus(self, body):
        headers = dict(DAV_HEADERS)
        headers["Cache-Control"] = f"public, s-maxage={self._cache_ttl}"
        return Response(
            body, status_code=207, media_type=MULTISTATUS_TYPE, headers=headers
        )

    async def evict_root_cache(self, background):
        try:
            evict_later(background, self._cache, ROOT)
        except Exception as e:
            logger.exception("Scheduling root cache eviction failed")
            return PlainTextResponse(f"Failed to delete cache: {e}", status_code=500)
        return PlainTextResponse("cache deleted successfully")

    def options(self):
        headers = dict(DAV_HEADERS)
        headers["Allow"] = ALLOW
        return Response(status_code=200, headers=headers)

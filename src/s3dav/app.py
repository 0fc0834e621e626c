"""FastAPI application factory and routing for the gateway.

Routes are matched by method and path shape; the fixed maintenance and
WebDAV entry point routes are registered before the catch-all object
routes so they are not shadowed.

Everything below ``/dav`` mirrors the root: ``/dav/a/b.txt`` is the object
``a/b.txt`` and listings requested there carry ``/dav`` hrefs.  Keys that
themselves start with ``dav/`` are therefore only reachable through the mount.
"""

from fastapi import BackgroundTasks
from fastapi import FastAPI
from fastapi import Request
from fastapi import Response
from s3dav.cache import DEFAULT_TTL
from s3dav.handlers import DAV_ENTRY_POINT
from s3dav.handlers import Handlers
from s3dav.uploads import parse_form
from urllib.parse import quote

import logging


logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, PUT, POST, DELETE, OPTIONS, PROPFIND",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Expose-Headers": "DAV, Content-Disposition, Content-Length",
}

EVICT_ROOT_PATH = "/_cache/evict"


def _raw_path(request):
    """The request path as sent by the client, still percent-encoded."""
    raw = request.scope.get("raw_path")
    if raw:
        return raw.decode("utf-8", "replace").split("?", 1)[0]
    return quote(request.url.path)


def _dav_path(request):
    """The raw path below the WebDAV mount point, ``""`` for the mount itself."""
    return _raw_path(request)[len(DAV_ENTRY_POINT):]


def create_app(store, cache, cache_ttl=DEFAULT_TTL) -> FastAPI:
    """Create the gateway application.

    Args:
        store: An IObjectStore holding the files.
        cache: An ICacheInvalidator; if it also provides IListingCache,
            listings are cached in it.
        cache_ttl: Seconds edge caches may keep a listing.
    """
    app = FastAPI(
        title="s3dav",
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )
    handlers = Handlers(store, cache, cache_ttl=cache_ttl)
    app.state.handlers = handlers

    @app.middleware("http")
    async def cors_headers_middleware(request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in CORS_HEADERS.items():
            response.headers[name] = value
        return response

    @app.options("/{path:path}")
    async def options(path: str):
        return handlers.options()

    @app.post(EVICT_ROOT_PATH)
    async def evict_root_cache(background_tasks: BackgroundTasks):
        return await handlers.evict_root_cache(background_tasks)

    @app.api_route(DAV_ENTRY_POINT, methods=["PROPFIND"])
    @app.api_route(DAV_ENTRY_POINT + "/{path:path}", methods=["PROPFIND"])
    async def dav_propfind(request: Request):
        return await handlers.list_collection(_dav_path(request), DAV_ENTRY_POINT)

    @app.api_route(DAV_ENTRY_POINT, methods=["GET", "HEAD"])
    @app.api_route(DAV_ENTRY_POINT + "/{path:path}", methods=["GET", "HEAD"])
    async def dav_get(request: Request):
        path = _dav_path(request)
        if not path or path.endswith("/"):
            return await handlers.list_collection(path, DAV_ENTRY_POINT)
        return await handlers.fetch_object(path)

    @app.put(DAV_ENTRY_POINT + "/{path:path}")
    async def dav_put(request: Request, background_tasks: BackgroundTasks):
        content = await request.body()
        return await handlers.store_object(
            _dav_path(request), content, background_tasks
        )

    @app.delete(DAV_ENTRY_POINT + "/{path:path}")
    async def dav_delete(request: Request, background_tasks: BackgroundTasks):
        return await handlers.delete_object(_dav_path(request), background_tasks)

    @app.api_route("/{path:path}", methods=["PROPFIND"])
    async def propfind(request: Request):
        return await handlers.list_collection(_raw_path(request))

    @app.api_route("/{path:path}", methods=["GET", "HEAD"])
    async def get(request: Request):
        raw_path = _raw_path(request)
        if raw_path != "/" and raw_path.endswith("/"):
            return await handlers.list_collection(raw_path)
        return await handlers.fetch_object(raw_path)

    @app.put("/{path:path}")
    async def put(request: Request, background_tasks: BackgroundTasks):
        content = await request.body()
        return await handlers.store_object(
            _raw_path(request), content, background_tasks
        )

    @app.delete("/{path:path}")
    async def delete(request: Request, background_tasks: BackgroundTasks):
        return await handlers.delete_object(_raw_path(request), background_tasks)

    @app.post("/{path:path}")
    async def bulk_upload(request: Request, background_tasks: BackgroundTasks):
        async with request.form() as form:
            parts = await parse_form(form)
        return await handlers.bulk_upload(parts, background_tasks)

    return app


def create_app_from_config(config) -> FastAPI:
    """Create the application from a loaded GatewayConfig."""
    store = config.open_store()
    cache = config.open_cache()
    logger.info(
        "Serving bucket %s with %s listing cache",
        config.bucket_name,
        config.cache_backend,
    )
    return create_app(store, cache, cache_ttl=config.cache_ttl)

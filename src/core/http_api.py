#!/usr/bin/env python3
"""
HTTP boundary.

Routes receive their store functions through a services mapping injected
at application creation. A route whose function is missing answers with a
500 JSON error instead of failing the server. Every error body has the
shape ``{"error": message, "level": "warn" | "error"}``.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from aiohttp import web

from core.exceptions import BlobNotFoundError, ErrorRecovery, InvalidCIDError, NewsNodeError, ValidationError

logger = logging.getLogger(__name__)

Service = Callable[..., Awaitable[Any]]

SERVICES_KEY = web.AppKey("services", dict)


class MissingServiceError(NewsNodeError):
    """A route was called but its store function was not injected."""

    def __init__(self, name: str):
        super().__init__(f"Service not available: {name}", error_code="MISSING_SERVICE", context={'service': name})


async def handle_error(request: web.Request, message: str, status: int = 500, level: str = "error") -> web.Response:
    """Log an API failure, record it in the debug log and build the error response."""
    if level == "warn":
        logger.warning(f"{request.method} {request.path}: {message}")
    else:
        logger.error(f"{request.method} {request.path}: {message}")

    audit = request.app[SERVICES_KEY].get('audit')
    if audit is not None:
        try:
            await audit(message, level, {'path': request.path, 'method': request.method, 'status': status})
        except Exception as e:
            logger.debug(f"Could not record API error in debug log: {e}")

    return web.json_response({'error': message, 'level': level}, status=status)


def _service(request: web.Request, name: str) -> Service:
    fn = request.app[SERVICES_KEY].get(name)
    if fn is None or not callable(fn):
        raise MissingServiceError(name)
    return fn


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except MissingServiceError as e:
        return await handle_error(request, e.message, 500, "error")
    except ValidationError as e:
        return await handle_error(request, e.message, 400, "warn")
    except (BlobNotFoundError, InvalidCIDError) as e:
        return await handle_error(request, e.message, 404, "warn")
    except NewsNodeError as e:
        return await handle_error(request, e.message, 500, ErrorRecovery.severity(e))
    except Exception as e:
        logger.exception(f"Unhandled error on {request.path}")
        return await handle_error(request, str(e) or e.__class__.__name__, 500, "error")


async def _json_body(request: web.Request) -> Dict[str, Any]:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError('body', 'unparsable', 'JSON object')
    if not isinstance(body, dict):
        raise ValidationError('body', type(body).__name__, 'JSON object')
    return body


def _identifier(request: web.Request, body: Optional[Dict[str, Any]] = None) -> str:
    body = body or {}
    identifier = request.query.get('id') or body.get('id') or body.get('url') or request.query.get('url')
    if not identifier:
        raise ValidationError('id', identifier, 'article id, URL or content identifier')
    return str(identifier)


def _not_found(request: web.Request, what: str) -> Awaitable[web.Response]:
    return handle_error(request, f"{what} not found", 404, "warn")


async def get_status(request: web.Request) -> web.Response:
    return web.json_response(await _service(request, 'get_status')())


async def list_local(request: web.Request) -> web.Response:
    if 'id' in request.query:
        article = await _service(request, 'get_local')(request.query['id'])
        if article is None:
            return await _not_found(request, "Article")
        return web.json_response(article)
    return web.json_response(await _service(request, 'list_local')())


async def delete_local(request: web.Request) -> web.Response:
    url = request.query.get('url')
    if not url:
        return await handle_error(request, "Missing url parameter", 400, "warn")
    await _service(request, 'delete_local')(url)
    return web.json_response({'deleted': url})


async def fetch_local(request: web.Request) -> web.Response:
    body = await _json_body(request)
    await _service(request, 'ingest')(
        target_language=body.get('target_language'),
        since=body.get('since'),
        skip_translation=bool(body.get('skip_translation', True)),
    )
    return web.json_response({'status': 'accepted'}, status=202)


def _overwrite_flag(request: web.Request, body: Dict[str, Any]) -> bool:
    return request.query.get('overwrite') == 'true' or body.get('overwrite') is True


async def save_local(request: web.Request) -> web.Response:
    body = await _json_body(request)
    overwrite = _overwrite_flag(request, body)
    saved = await _service(request, 'save_local')(body, overwrite)
    return web.json_response({'success': True, 'url': body.get('url'), 'saved': saved, 'overwritten': overwrite})


async def refetch_local(request: web.Request) -> web.Response:
    try:
        body = await request.json() if request.can_read_body else None
    except ValueError:
        body = None
    if not isinstance(body, list):
        raise ValidationError('body', type(body).__name__, 'JSON array of articles')
    added = await _service(request, 'refetch_local')(body)
    return web.json_response({'success': True, 'added': added})


async def resolve_local(request: web.Request) -> web.Response:
    body = await _json_body(request)
    article = await _service(request, 'resolve')(_identifier(request, body))
    if article is None:
        return await _not_found(request, "Article")
    return web.json_response(article)


async def translate_local(request: web.Request) -> web.Response:
    body = await _json_body(request)
    target_language = body.get('target_language')
    if not target_language:
        raise ValidationError('target_language', target_language, 'language code')
    fields = body.get('fields') or ['title', 'summary']
    article = await _service(request, 'translate')(_identifier(request, body), list(fields), target_language)
    if article is None:
        return await _not_found(request, "Article")
    return web.json_response(article)


async def list_analyzed(request: web.Request) -> web.Response:
    if 'id' in request.query:
        article = await _service(request, 'get_analyzed')(request.query['id'])
        if article is None:
            return await _not_found(request, "Analyzed article")
        return web.json_response(article)
    return web.json_response(await _service(request, 'list_analyzed')())


async def save_analyzed(request: web.Request) -> web.Response:
    article_id = await _service(request, 'save_analyzed')(await _json_body(request))
    return web.json_response({'success': True, 'id': article_id})


async def delete_analyzed(request: web.Request) -> web.Response:
    article_id = request.match_info['id']
    await _service(request, 'delete_analyzed')(article_id)
    return web.json_response({'success': True, 'id': article_id})


async def list_federated(request: web.Request) -> web.Response:
    return web.json_response(await _service(request, 'list_federated')())


async def list_log(request: web.Request) -> web.Response:
    return web.json_response(await _service(request, 'list_log')())


async def add_log(request: web.Request) -> web.Response:
    body = await _json_body(request)
    entry = await _service(request, 'add_log')(body.get('message'), body.get('level') or 'info', body.get('meta'))
    return web.json_response({'success': True, 'entry': entry}, status=201)


async def replication_entries(request: web.Request) -> web.Response:
    try:
        since = int(request.query.get('since', '0'))
    except ValueError:
        raise ValidationError('since', request.query.get('since'), 'integer clock')
    name = request.match_info['collection']
    entries = await _service(request, 'replication_entries')(name, since)
    if entries is None:
        return await _not_found(request, f"Collection {name}")
    return web.json_response({'collection': name, 'entries': entries})


async def get_block(request: web.Request) -> web.Response:
    data = await _service(request, 'get_block')(request.match_info['cid'])
    return web.Response(body=data, content_type='application/octet-stream')


def create_app(services: Dict[str, Service]) -> web.Application:
    """
    Build the application.

    Args:
        services: Store functions by name; see ``core.services.NodeServices.as_handlers``
    """
    app = web.Application(middlewares=[error_middleware])
    app[SERVICES_KEY] = dict(services)
    app.router.add_get('/status', get_status)
    app.router.add_get('/articles/local', list_local)
    app.router.add_delete('/articles/local', delete_local)
    app.router.add_post('/articles/local/fetch', fetch_local)
    app.router.add_post('/articles/local/save', save_local)
    app.router.add_post('/articles/local/refetch', refetch_local)
    app.router.add_post('/articles/local/full', resolve_local)
    app.router.add_post('/articles/local/translate', translate_local)
    app.router.add_get('/articles/analyzed', list_analyzed)
    app.router.add_post('/articles/analyzed/save', save_analyzed)
    app.router.add_delete('/articles/analyzed/delete/{id}', delete_analyzed)
    app.router.add_get('/articles/federated', list_federated)
    app.router.add_get('/log', list_log)
    app.router.add_get('/debug/logs', list_log)
    app.router.add_post('/debug/log', add_log)
    app.router.add_get('/replication/{collection}', replication_entries)
    app.router.add_get('/blocks/{cid}', get_block)
    return app


class HttpBoundary:
    """Runs the application on a TCP site."""

    def __init__(self, app: web.Application):
        self.app = app
        self._runner: Optional[web.AppRunner] = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    async def start(self, host: str = "0.0.0.0", port: int = 9001) -> None:
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, host, port)
        await site.start()
        self._runner = runner
        logger.info(f"HTTP API listening on {host}:{port}")

    async def close(self) -> None:
        runner, self._runner = self._runner, None
        if runner is not None:
            await runner.cleanup()
            logger.info("HTTP API closed")

"""
HTTP interface for Snapshot Service.

Routes:
    GET  /health      liveness probe
    POST /screenshot  render HTML markup to a JPEG
    POST /iframe      capture allow-listed embed URLs to PNGs
"""
import base64
import functools
import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp_cors
from aiohttp import web

from snapshot_service.browser.browser import Browser
from snapshot_service.browser.exceptions import NoValidTargetsError, ValidationError
from snapshot_service.capture import DEFAULT_HEIGHT, DEFAULT_WIDTH, CaptureResult, capture_markup
from snapshot_service.config import Settings
from snapshot_service.orchestrator import CaptureOrchestrator
from snapshot_service.validation import UrlValidator, parse_dimension

logger = logging.getLogger(__name__)

MAX_BODY_SIZE = 50 * 1024 * 1024

MarkupCapture = Callable[[str, int, int], Awaitable[CaptureResult]]

ORCHESTRATOR_KEY = web.AppKey("orchestrator", CaptureOrchestrator)
MARKUP_CAPTURE_KEY = web.AppKey("markup_capture", MarkupCapture)


def to_data_url(image: bytes, mime_type: str) -> str:
    """Encode image bytes as a ``data:`` URL."""
    return f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"


def json_error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def read_json_object(request: web.Request) -> Optional[Dict[str, Any]]:
    """Return the request body as a dict, or None if it is not a JSON object."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


async def health(request: web.Request) -> web.Response:
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return web.json_response({"status": "ok", "timestamp": timestamp.replace("+00:00", "Z")})


async def screenshot(request: web.Request) -> web.Response:
    """Render the posted markup and return it as a JPEG data URL."""
    body = await read_json_object(request)
    if body is None:
        return json_error("Invalid JSON body", 400)

    html = body.get("html")
    if not html:
        return json_error("HTML content required", 400)

    try:
        if not isinstance(html, str):
            raise ValidationError("html must be a string")
        width = parse_dimension(body.get("width"), "width", DEFAULT_WIDTH)
        height = parse_dimension(body.get("height"), "height", DEFAULT_HEIGHT)
    except ValidationError as e:
        return json_error(str(e), 400)

    capture: MarkupCapture = request.app[MARKUP_CAPTURE_KEY]
    try:
        result = await capture(html, width, height)
    except Exception as e:
        logger.exception("Screenshot error")
        return json_error(str(e) or "Screenshot failed", 500)

    return web.json_response({
        "success": True,
        "screenshot": to_data_url(result.data, result.mime_type),
    })


async def iframe(request: web.Request) -> web.Response:
    """Capture each allow-listed URL; failed captures map to an empty string."""
    body = await read_json_object(request)
    urls = body.get("urls") if body else None
    if not urls or not isinstance(urls, list):
        return json_error("URLs array required", 400)

    orchestrator = request.app[ORCHESTRATOR_KEY]
    try:
        results = await orchestrator.capture_all(urls)
    except NoValidTargetsError as e:
        return json_error(str(e), 400)
    except Exception as e:
        logger.exception("Iframe screenshot error")
        return json_error(str(e) or "Iframe screenshot failed", 500)

    screenshots = {
        url: to_data_url(result.data, result.mime_type) if result is not None else ""
        for url, result in results.items()
    }
    return web.json_response({"success": True, "screenshots": screenshots})


def setup_cors(app: web.Application, settings: Settings) -> None:
    """Apply the configured CORS origins to every route."""
    options = aiohttp_cors.ResourceOptions(
        allow_credentials=False,
        expose_headers="*",
        allow_headers="*",
    )
    cors = aiohttp_cors.setup(
        app, defaults={origin: options for origin in settings.allowed_origins}
    )
    for route in list(app.router.routes()):
        cors.add(route)


def create_app(
    settings: Optional[Settings] = None,
    orchestrator: Optional[CaptureOrchestrator] = None,
    markup_capture: Optional[MarkupCapture] = None,
) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        settings: Service settings, read from the environment when omitted.
        orchestrator: Batch capturer for /iframe.
        markup_capture: Coroutine function ``(html, width, height) -> CaptureResult`` for /screenshot.

    Returns:
        The configured application.
    """
    settings = settings or Settings.from_env()
    session_factory = functools.partial(
        Browser,
        executable_path=settings.executable_path,
        launch_timeout=settings.launch_timeout,
    )

    app = web.Application(client_max_size=MAX_BODY_SIZE)
    app[ORCHESTRATOR_KEY] = orchestrator or CaptureOrchestrator(
        UrlValidator(), session_factory=session_factory
    )
    app[MARKUP_CAPTURE_KEY] = markup_capture or functools.partial(
        capture_markup, session_factory=session_factory
    )

    app.router.add_get("/health", health)
    app.router.add_post("/screenshot", screenshot)
    app.router.add_post("/iframe", iframe)
    setup_cors(app, settings)
    return app

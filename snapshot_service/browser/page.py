"""
Browser page (tab) driven over a flat CDP session.
"""
from __future__ import annotations

import asyncio
import base64
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Set

from snapshot_service.browser.exceptions import CaptureError

if TYPE_CHECKING:
    from snapshot_service.core.connection import CDPConnection

logger = logging.getLogger(__name__)


class Page:
    """
    Manages one browser page via CDP.

    The page tracks in-flight network requests from the moment it is
    initialized so that loads can wait for the network to go quiet.

    Args:
        connection: Connection to the owning browser.
    """

    # Seconds without any in-flight request before the network counts as idle.
    network_idle_window = 0.5
    poll_interval = 0.1

    def __init__(self, connection: "CDPConnection") -> None:
        self.connection = connection
        self.target_id: Optional[str] = None
        self.session_id: Optional[str] = None
        self.url = "about:blank"
        self._closed = False
        self._inflight_requests: Set[str] = set()
        self._last_network_activity = 0.0
        self._load_event = asyncio.Event()

    async def initialize(self) -> None:
        """Create the target, attach to it and enable the domains we need.

        Raises:
            CaptureError: If the page cannot be set up.
        """
        try:
            result = await self.connection.send_command(
                "Target.createTarget", {"url": "about:blank"}
            )
            self.target_id = result["targetId"]
            result = await self.connection.send_command(
                "Target.attachToTarget", {"targetId": self.target_id, "flatten": True}
            )
            self.session_id = result["sessionId"]
            logger.debug(f"Attached to target {self.target_id} (session {self.session_id})")

            self._add_listener("Network.requestWillBeSent", self._on_request_started)
            self._add_listener("Network.loadingFinished", self._on_request_done)
            self._add_listener("Network.loadingFailed", self._on_request_done)
            self._add_listener("Page.loadEventFired", self._on_load_event)

            await asyncio.gather(
                self.send_command("Page.enable"),
                self.send_command("Network.enable"),
                self.send_command("Runtime.enable"),
            )
        except CaptureError:
            raise
        except Exception as e:
            raise CaptureError(f"Failed to initialize page: {e}")

    async def send_command(
        self, method: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """Send a command to this page's session."""
        return await self.connection.send_command(
            method, params, session_id=self.session_id, timeout=timeout
        )

    async def set_viewport(self, width: int, height: int, device_scale_factor: float = 1) -> None:
        """Emulate a viewport of the given CSS size and pixel density."""
        try:
            await self.send_command(
                "Emulation.setDeviceMetricsOverride",
                {
                    "width": width,
                    "height": height,
                    "deviceScaleFactor": device_scale_factor,
                    "mobile": False,
                },
            )
        except Exception as e:
            raise CaptureError(f"Failed to set viewport: {e}")

    async def set_content(self, html: str, timeout: float = 30.0) -> None:
        """Replace the document with ``html`` and wait for load and network idle.

        Args:
            html: Markup to render.
            timeout: Seconds allowed for the document to finish loading.

        Raises:
            CaptureError: On failure, with ``kind="timeout"`` if the page did not settle in time.
        """

        async def load() -> None:
            frame_tree = await self.send_command("Page.getFrameTree")
            frame_id = frame_tree["frameTree"]["frame"]["id"]
            self._mark_network_activity()
            await self.send_command("Page.setDocumentContent", {"frameId": frame_id, "html": html})
            await self.wait_for_ready_state()
            await self.wait_for_network_idle()

        await self._wait_until_loaded(load(), timeout, "content")

    async def navigate(self, url: str, timeout: float = 30.0) -> None:
        """Navigate to ``url`` and wait for the load event and network idle.

        Args:
            url: Absolute URL to open.
            timeout: Seconds allowed for the navigation to settle.

        Raises:
            CaptureError: On failure, with ``kind="timeout"`` if the page did not settle in time.
        """

        async def load() -> None:
            self._load_event.clear()
            self._mark_network_activity()
            result = await self.send_command("Page.navigate", {"url": url}, timeout=timeout)
            if result.get("errorText"):
                raise CaptureError(f"Navigation to {url} failed: {result['errorText']}")
            self.url = url
            await self._load_event.wait()
            await self.wait_for_network_idle()

        await self._wait_until_loaded(load(), timeout, url)

    async def evaluate(self, expression: str) -> Any:
        """Evaluate a JavaScript expression and return its value."""
        result = await self.send_command(
            "Runtime.evaluate", {"expression": expression, "returnByValue": True}
        )
        if "exceptionDetails" in result:
            details = result["exceptionDetails"]
            raise CaptureError(f"JavaScript error: {details.get('text', 'unknown error')}")
        return result.get("result", {}).get("value")

    async def wait_for_ready_state(self) -> None:
        """Poll until ``document.readyState`` is ``complete``."""
        while await self.evaluate("document.readyState") != "complete":
            await asyncio.sleep(self.poll_interval)

    async def wait_for_network_idle(self) -> None:
        """Wait until no request has been in flight for ``network_idle_window`` seconds."""
        loop = asyncio.get_running_loop()
        while True:
            quiet_for = loop.time() - self._last_network_activity
            if not self._inflight_requests and quiet_for >= self.network_idle_window:
                return
            await asyncio.sleep(self.poll_interval)

    async def screenshot(self, format: str = "png", quality: Optional[int] = None) -> bytes:
        """Capture the current viewport.

        Args:
            format: "png" or "jpeg".
            quality: JPEG quality from 0 to 100, ignored for PNG.

        Returns:
            The encoded image.
        """
        params: Dict[str, Any] = {"format": format, "captureBeyondViewport": False}
        if format == "jpeg" and quality is not None:
            params["quality"] = quality
        try:
            result = await self.send_command("Page.captureScreenshot", params)
            return base64.b64decode(result["data"])
        except Exception as e:
            raise CaptureError(f"Failed to capture screenshot: {e}")

    async def close(self) -> None:
        """Close the page. Failures are logged; the page is considered closed either way."""
        if self._closed:
            return
        self._closed = True

        if self.session_id:
            self.connection.remove_session_listeners(self.session_id)
        if not self.target_id:
            return
        try:
            await self.connection.send_command(
                "Target.closeTarget", {"targetId": self.target_id}, timeout=5.0
            )
            logger.debug(f"Page {self.target_id} closed")
        except Exception as e:
            logger.warning(f"Error closing page {self.target_id}: {e}")

    async def _wait_until_loaded(self, load, timeout: float, what: str) -> None:
        try:
            await asyncio.wait_for(load, timeout=timeout)
        except asyncio.TimeoutError:
            raise CaptureError(
                f"Timed out after {timeout} seconds loading {what}", kind=CaptureError.TIMEOUT
            )
        except CaptureError:
            raise
        except Exception as e:
            raise CaptureError(f"Failed to load {what}: {e}")

    def _add_listener(self, event: str, callback) -> None:
        self.connection.add_event_listener(event, callback, session_id=self.session_id)

    def _mark_network_activity(self) -> None:
        self._last_network_activity = asyncio.get_running_loop().time()

    def _on_request_started(self, params: Dict[str, Any]) -> None:
        request_id = params.get("requestId")
        if request_id:
            self._inflight_requests.add(request_id)
            self._mark_network_activity()

    def _on_request_done(self, params: Dict[str, Any]) -> None:
        request_id = params.get("requestId")
        if request_id in self._inflight_requests:
            self._inflight_requests.discard(request_id)
            self._mark_network_activity()

    def _on_load_event(self, params: Dict[str, Any]) -> None:
        self._load_event.set()

"""
Single-page capture.

PageCapture drives one page from blank to screenshot: viewport, content,
load wait, settle delay, image. The page is always closed afterwards.
"""
import asyncio
import logging
from typing import Any, AsyncContextManager, Callable, NamedTuple, Optional

from snapshot_service.browser.browser import Browser
from snapshot_service.browser.exceptions import CaptureError
from snapshot_service.browser.profiles import MARKUP_PROFILE, LaunchProfile
from snapshot_service.validation import parse_dimension

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 1200
DEFAULT_HEIGHT = 900

SessionFactory = Callable[[LaunchProfile], AsyncContextManager[Any]]


class CapturePolicy(NamedTuple):
    """How a target is loaded and encoded."""

    timeout: float
    settle_delay: float
    image_format: str
    quality: Optional[int] = None
    device_scale_factor: float = 2


MARKUP_POLICY = CapturePolicy(timeout=30.0, settle_delay=1.0, image_format="jpeg", quality=90)

# Embeds pull scripts and WebGL assets from third parties, so they get longer.
URL_POLICY = CapturePolicy(timeout=45.0, settle_delay=5.0, image_format="png")

URL_VIEWPORT = (1920, 1080)

MIME_TYPES = {"jpeg": "image/jpeg", "png": "image/png"}


class CaptureResult(NamedTuple):
    """An encoded screenshot tagged with its MIME type."""

    data: bytes
    mime_type: str


class CaptureTarget:
    """
    One unit of capture work: inline markup or a URL, plus its viewport and policy.

    Build instances with ``for_markup`` or ``for_url``.
    """

    def __init__(
        self,
        policy: CapturePolicy,
        width: int,
        height: int,
        html: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        if (html is None) == (url is None):
            raise ValueError("exactly one of html or url is required")
        self.policy = policy
        self.width = width
        self.height = height
        self.html = html
        self.url = url

    @classmethod
    def for_markup(
        cls,
        html: str,
        width: Optional[int] = None,
        height: Optional[int] = None,
        policy: CapturePolicy = MARKUP_POLICY,
    ) -> "CaptureTarget":
        """Target rendering ``html`` in a width x height viewport (default 1200x900)."""
        return cls(
            policy,
            parse_dimension(width, "width", DEFAULT_WIDTH),
            parse_dimension(height, "height", DEFAULT_HEIGHT),
            html=html,
        )

    @classmethod
    def for_url(cls, url: str, policy: CapturePolicy = URL_POLICY) -> "CaptureTarget":
        """Target navigating to ``url`` in a fixed 1920x1080 viewport."""
        width, height = URL_VIEWPORT
        return cls(policy, width, height, url=url)

    @property
    def mime_type(self) -> str:
        return MIME_TYPES[self.policy.image_format]

    @property
    def label(self) -> str:
        return self.url if self.url is not None else f"<markup {len(self.html)} chars>"


class PageCapture:
    """Captures one target in its own page of a running browser session."""

    async def capture(self, session: Any, target: CaptureTarget) -> CaptureResult:
        """
        Render ``target`` and return the encoded image.

        Args:
            session: Running browser exposing ``new_page()``.
            target: What to render and how.

        Returns:
            The JPEG or PNG image, per the target's policy.

        Raises:
            CaptureError: If the page cannot be opened, loaded or captured.
                The session itself is left running.
        """
        policy = target.policy
        page = await self._open_page(session)
        try:
            await page.set_viewport(target.width, target.height, policy.device_scale_factor)
            if target.html is not None:
                await page.set_content(target.html, timeout=policy.timeout)
            else:
                await page.navigate(target.url, timeout=policy.timeout)

            # Fixed settle time for animations and WebGL to draw a stable frame.
            await asyncio.sleep(policy.settle_delay)

            image = await page.screenshot(format=policy.image_format, quality=policy.quality)
            logger.debug(f"Captured {target.label} ({len(image)} bytes)")
            return CaptureResult(image, target.mime_type)
        except CaptureError:
            raise
        except Exception as e:
            raise CaptureError(str(e))
        finally:
            await self._close_page(page)

    async def _open_page(self, session: Any) -> Any:
        try:
            return await session.new_page()
        except CaptureError:
            raise
        except Exception as e:
            raise CaptureError(f"Failed to open page: {e}")

    async def _close_page(self, page: Any) -> None:
        try:
            await page.close()
        except Exception as e:
            logger.warning(f"Error closing page: {e}")


async def capture_markup(
    html: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
    session_factory: Optional[SessionFactory] = None,
    page_capture: Optional[PageCapture] = None,
    policy: CapturePolicy = MARKUP_POLICY,
) -> CaptureResult:
    """
    Render markup in a dedicated markup-profile browser and return a JPEG.

    Args:
        html: Markup to render.
        width: Viewport width, 1200 when omitted.
        height: Viewport height, 900 when omitted.
        session_factory: Opens a browser for a launch profile.
        page_capture: Capture implementation.
        policy: Load and encoding policy.

    Raises:
        ValidationError: If width or height is not a positive integer.
        LaunchError: If the browser cannot start.
        CaptureError: If the markup cannot be rendered.
    """
    target = CaptureTarget.for_markup(html, width, height, policy=policy)
    session_factory = session_factory or Browser
    page_capture = page_capture or PageCapture()

    async with session_factory(MARKUP_PROFILE) as session:
        return await page_capture.capture(session, target)

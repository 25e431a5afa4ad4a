"""
Batch capture of allow-listed URLs in one shared browser.
"""
import logging
from typing import Any, Dict, Iterable, Optional

from snapshot_service.browser.browser import Browser
from snapshot_service.browser.exceptions import CaptureError, NoValidTargetsError
from snapshot_service.browser.profiles import WEBGL_PROFILE, LaunchProfile
from snapshot_service.capture import (
    URL_POLICY,
    CapturePolicy,
    CaptureResult,
    CaptureTarget,
    PageCapture,
    SessionFactory,
)
from snapshot_service.validation import UrlValidator

logger = logging.getLogger(__name__)

BatchResult = Dict[str, Optional[CaptureResult]]


class CaptureOrchestrator:
    """
    Captures a list of URLs one after another in a single browser session.

    A failing URL is recorded as ``None`` and the batch carries on; only a
    batch with no acceptable URL or a browser that will not start fails as
    a whole.

    Args:
        validator: Allow-list applied before anything is launched.
        session_factory: Opens a browser for a launch profile.
        page_capture: Capture implementation.
        profile: Launch profile for the shared session.
        policy: Load and encoding policy for every URL.
    """

    def __init__(
        self,
        validator: Optional[UrlValidator] = None,
        session_factory: Optional[SessionFactory] = None,
        page_capture: Optional[PageCapture] = None,
        profile: LaunchProfile = WEBGL_PROFILE,
        policy: CapturePolicy = URL_POLICY,
    ) -> None:
        self.validator = validator or UrlValidator()
        self.session_factory = session_factory or Browser
        self.page_capture = page_capture or PageCapture()
        self.profile = profile
        self.policy = policy

    async def capture_all(self, urls: Iterable[Any]) -> BatchResult:
        """
        Capture every allowed URL.

        Args:
            urls: Candidate URLs, filtered through the validator first.

        Returns:
            Mapping of URL to its capture, or None where that URL failed,
            in input order.

        Raises:
            NoValidTargetsError: If no URL passes the allow-list.
            LaunchError: If the browser cannot start.
        """
        targets = self.validator.filter(urls)
        if not targets:
            raise NoValidTargetsError()

        logger.info(f"Capturing {len(targets)} URL(s)")
        results: BatchResult = {}
        async with self.session_factory(self.profile) as session:
            for url in targets:
                target = CaptureTarget.for_url(url, policy=self.policy)
                try:
                    results[url] = await self.page_capture.capture(session, target)
                except CaptureError as e:
                    logger.error(f"Error capturing {url}: {e}")
                    results[url] = None

        failed = sum(1 for result in results.values() if result is None)
        if failed:
            logger.warning(f"{failed} of {len(results)} capture(s) failed")
        return results

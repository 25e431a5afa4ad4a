"""In-process fakes for the browser layer."""
from typing import Any, Dict, List, Optional

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-png"
JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"


class FakePage:
    """Stands in for snapshot_service.browser.page.Page."""

    def __init__(self, session: "FakeSession", failures: Dict[str, Exception]):
        self.session = session
        self.failures = failures
        self.calls: List[tuple] = []
        self.closed = False

    async def set_viewport(self, width, height, device_scale_factor=1):
        self.calls.append(("set_viewport", width, height, device_scale_factor))

    async def set_content(self, html, timeout=30.0):
        self.calls.append(("set_content", html, timeout))
        if html in self.failures:
            raise self.failures[html]

    async def navigate(self, url, timeout=30.0):
        self.calls.append(("navigate", url, timeout))
        if url in self.failures:
            raise self.failures[url]

    async def screenshot(self, format="png", quality=None):
        self.calls.append(("screenshot", format, quality))
        return JPEG_BYTES if format == "jpeg" else PNG_BYTES

    async def close(self):
        self.calls.append(("close",))
        self.closed = True
        self.session.events.append("page_closed")


class FakeSession:
    """Stands in for a launched snapshot_service.browser.browser.Browser."""

    def __init__(self, profile, failures: Dict[str, Exception], new_page_error: Optional[Exception] = None):
        self.profile = profile
        self.failures = failures
        self.new_page_error = new_page_error
        self.pages: List[FakePage] = []
        self.events: List[str] = []
        self.close_count = 0

    async def new_page(self) -> FakePage:
        if self.new_page_error is not None:
            raise self.new_page_error
        page = FakePage(self, self.failures)
        self.pages.append(page)
        self.events.append("page_opened")
        return page

    async def close(self) -> None:
        self.close_count += 1

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class FakeSessionFactory:
    """
    Callable with the Browser constructor's shape: ``factory(profile)``.

    Args:
        failures: Maps a URL or markup string to the exception its load raises.
        launch_error: Raised on entry instead of opening a session.
        new_page_error: Raised by every ``new_page`` call.
    """

    def __init__(
        self,
        failures: Optional[Dict[str, Exception]] = None,
        launch_error: Optional[Exception] = None,
        new_page_error: Optional[Exception] = None,
    ):
        self.failures = failures or {}
        self.launch_error = launch_error
        self.new_page_error = new_page_error
        self.sessions: List[FakeSession] = []
        self.profiles: List[Any] = []

    def __call__(self, profile) -> "_SessionContext":
        self.profiles.append(profile)
        return _SessionContext(self, profile)


class _SessionContext:
    def __init__(self, factory: FakeSessionFactory, profile):
        self.factory = factory
        self.profile = profile
        self.session: Optional[FakeSession] = None

    async def __aenter__(self) -> FakeSession:
        if self.factory.launch_error is not None:
            raise self.factory.launch_error
        self.session = FakeSession(self.profile, self.factory.failures, self.factory.new_page_error)
        self.factory.sessions.append(self.session)
        return self.session

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.session.close()



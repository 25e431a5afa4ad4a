"""
Tests for single-page capture.
"""
from unittest.mock import AsyncMock, patch

import pytest

from snapshot_service.browser.exceptions import CaptureError, LaunchError, ValidationError
from snapshot_service.browser.profiles import MARKUP_PROFILE
from snapshot_service.capture import (
    MARKUP_POLICY,
    URL_POLICY,
    CaptureResult,
    CaptureTarget,
    PageCapture,
    capture_markup,
)

from .fakes import JPEG_BYTES, PNG_BYTES, FakeSession, FakeSessionFactory

NO_SETTLE_MARKUP = MARKUP_POLICY._replace(settle_delay=0)
NO_SETTLE_URL = URL_POLICY._replace(settle_delay=0)


def test_policies():
    """Test the fixed load and encoding policies."""
    assert MARKUP_POLICY.timeout == 30.0
    assert MARKUP_POLICY.settle_delay == 1.0
    assert MARKUP_POLICY.image_format == "jpeg"
    assert MARKUP_POLICY.quality == 90
    assert URL_POLICY.timeout == 45.0
    assert URL_POLICY.settle_delay == 5.0
    assert URL_POLICY.image_format == "png"
    assert MARKUP_POLICY.device_scale_factor == URL_POLICY.device_scale_factor == 2


def test_target_defaults():
    target = CaptureTarget.for_markup("<h1>hi</h1>")
    assert (target.width, target.height) == (1200, 900)
    assert target.mime_type == "image/jpeg"

    target = CaptureTarget.for_url("https://my.spline.design/abc")
    assert (target.width, target.height) == (1920, 1080)
    assert target.mime_type == "image/png"


def test_target_requires_exactly_one_source():
    with pytest.raises(ValueError):
        CaptureTarget(MARKUP_POLICY, 10, 10)
    with pytest.raises(ValueError):
        CaptureTarget(MARKUP_POLICY, 10, 10, html="<p>", url="https://unicorn.studio")


def test_target_rejects_bad_dimensions():
    with pytest.raises(ValidationError):
        CaptureTarget.for_markup("<p>", width=0)


@pytest.mark.asyncio
async def test_capture_markup_page_flow():
    """Test viewport, content, encoding and close for markup."""
    session = FakeSession(MARKUP_PROFILE, {})
    target = CaptureTarget.for_markup("<h1>hi</h1>", 800, 600, policy=NO_SETTLE_MARKUP)

    result = await PageCapture().capture(session, target)

    assert result == CaptureResult(JPEG_BYTES, "image/jpeg")
    page = session.pages[0]
    assert page.calls == [
        ("set_viewport", 800, 600, 2),
        ("set_content", "<h1>hi</h1>", 30.0),
        ("screenshot", "jpeg", 90),
        ("close",),
    ]


@pytest.mark.asyncio
async def test_capture_url_page_flow():
    """Test the fixed viewport, navigation and PNG encoding for URLs."""
    session = FakeSession(None, {})
    target = CaptureTarget.for_url("https://unicorn.studio/embed/1", policy=NO_SETTLE_URL)

    result = await PageCapture().capture(session, target)

    assert result == CaptureResult(PNG_BYTES, "image/png")
    assert session.pages[0].calls == [
        ("set_viewport", 1920, 1080, 2),
        ("navigate", "https://unicorn.studio/embed/1", 45.0),
        ("screenshot", "png", None),
        ("close",),
    ]


@pytest.mark.asyncio
async def test_capture_waits_settle_delay():
    """Test that the settle delay runs between load and screenshot."""
    session = FakeSession(None, {})
    target = CaptureTarget.for_url("https://unicorn.studio/embed/1")

    with patch("snapshot_service.capture.asyncio.sleep", new=AsyncMock()) as sleep:
        await PageCapture().capture(session, target)

    sleep.assert_awaited_once_with(5.0)


@pytest.mark.asyncio
async def test_capture_failure_closes_page():
    """Test that a load failure surfaces as CaptureError and the page still closes."""
    url = "https://prod.spline.design/broken"
    error = CaptureError("Timed out after 45.0 seconds loading", kind=CaptureError.TIMEOUT)
    session = FakeSession(None, {url: error})

    with pytest.raises(CaptureError) as exc_info:
        await PageCapture().capture(session, CaptureTarget.for_url(url, policy=NO_SETTLE_URL))

    assert exc_info.value.kind == CaptureError.TIMEOUT
    assert session.pages[0].closed
    assert ("screenshot", "png", None) not in session.pages[0].calls
    assert session.close_count == 0


@pytest.mark.asyncio
async def test_capture_wraps_unexpected_errors():
    url = "https://prod.spline.design/odd"
    session = FakeSession(None, {url: RuntimeError("socket reset")})

    with pytest.raises(CaptureError) as exc_info:
        await PageCapture().capture(session, CaptureTarget.for_url(url, policy=NO_SETTLE_URL))

    assert "socket reset" in str(exc_info.value)
    assert exc_info.value.kind == CaptureError.ERROR
    assert session.pages[0].closed


@pytest.mark.asyncio
async def test_capture_new_page_failure():
    session = FakeSession(None, {}, new_page_error=ConnectionResetError("gone"))

    with pytest.raises(CaptureError) as exc_info:
        await PageCapture().capture(session, CaptureTarget.for_url("https://unicorn.studio"))

    assert "Failed to open page" in str(exc_info.value)


@pytest.mark.asyncio
async def test_capture_markup_uses_markup_profile():
    """Test the single-target path: one markup-profile session, closed once."""
    factory = FakeSessionFactory()

    result = await capture_markup("<h1>hi</h1>", session_factory=factory, policy=NO_SETTLE_MARKUP)

    assert result.data == JPEG_BYTES
    assert result.mime_type == "image/jpeg"
    assert factory.profiles == [MARKUP_PROFILE]
    assert factory.sessions[0].close_count == 1
    assert factory.sessions[0].pages[0].calls[0] == ("set_viewport", 1200, 900, 2)


@pytest.mark.asyncio
async def test_capture_markup_propagates_capture_error():
    factory = FakeSessionFactory(failures={"<bad>": CaptureError("Failed to load content")})

    with pytest.raises(CaptureError):
        await capture_markup("<bad>", session_factory=factory, policy=NO_SETTLE_MARKUP)

    assert factory.sessions[0].close_count == 1


@pytest.mark.asyncio
async def test_capture_markup_propagates_launch_error(failing_launch_factory):
    with pytest.raises(LaunchError):
        await capture_markup("<h1>hi</h1>", session_factory=failing_launch_factory)


@pytest.mark.asyncio
async def test_capture_markup_validates_before_launch(session_factory):
    with pytest.raises(ValidationError):
        await capture_markup("<h1>hi</h1>", width=-1, session_factory=session_factory)

    assert session_factory.profiles == []

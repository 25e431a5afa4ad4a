"""Shared fixtures."""
import pytest

from snapshot_service.browser.exceptions import LaunchError

from .fakes import FakeSessionFactory


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory()


@pytest.fixture
def failing_launch_factory() -> FakeSessionFactory:
    return FakeSessionFactory(launch_error=LaunchError("Failed to launch browser chromium: not found"))

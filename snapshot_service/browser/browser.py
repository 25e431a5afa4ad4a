"""
Headless Chromium session.

A Browser owns one Chromium process for the span of one request: it spawns
the process with a launch profile, connects to its DevTools endpoint, hands
out pages, and tears everything down exactly once.
"""
import asyncio
import logging
import os
import shutil
import tempfile
from collections import deque
from typing import Callable, Deque, List, Optional

from snapshot_service.browser.exceptions import CaptureError, LaunchError
from snapshot_service.browser.page import Page
from snapshot_service.browser.profiles import LaunchProfile
from snapshot_service.core.connection import CDPConnection
from snapshot_service.core.exceptions import CDPError
from snapshot_service.core.protocol import CDPProtocol

logger = logging.getLogger(__name__)

EXECUTABLE_CANDIDATES = (
    "chromium",
    "chromium-browser",
    "google-chrome",
    "google-chrome-stable",
)


class Browser:
    """
    One running headless Chromium process.

    Use as an async context manager; the process is launched on entry and
    closed on exit whatever happened in between.

    Args:
        profile: Launch profile selecting the Chromium switches.
        executable_path: Chromium binary, looked up on PATH when omitted.
        launch_timeout: Seconds to wait for the DevTools endpoint.
        connection_factory: Builds the CDP connection from the WebSocket URL.
    """

    close_timeout = 5.0

    def __init__(
        self,
        profile: LaunchProfile,
        executable_path: Optional[str] = None,
        launch_timeout: float = 30.0,
        connection_factory: Callable[[str], CDPConnection] = CDPConnection,
    ) -> None:
        self.profile = profile
        self.executable_path = executable_path
        self.launch_timeout = launch_timeout
        self.connection: Optional[CDPConnection] = None
        self._connection_factory = connection_factory
        self._process: Optional[asyncio.subprocess.Process] = None
        self._user_data_dir: Optional[str] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._stderr_tail: Deque[str] = deque(maxlen=10)
        self._launched = False
        self._closed = False

    @staticmethod
    def find_executable(override: Optional[str] = None) -> str:
        """
        Resolve the Chromium binary.

        Args:
            override: Explicit path, used as is when set

        Returns:
            Path or command name of the browser executable

        Raises:
            LaunchError: If no browser can be found
        """
        if override:
            return override
        for candidate in EXECUTABLE_CANDIDATES:
            path = shutil.which(candidate)
            if path:
                return path
        raise LaunchError(
            "No Chromium executable found; set PUPPETEER_EXECUTABLE_PATH"
        )

    def build_args(self, user_data_dir: str) -> List[str]:
        """Return the full Chromium argument list for this profile."""
        return [
            "--headless=new",
            "--remote-debugging-port=0",
            f"--user-data-dir={user_data_dir}",
            *self.profile.args,
            "about:blank",
        ]

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def launch(self) -> None:
        """
        Start Chromium and connect to it.

        Raises:
            LaunchError: If the process cannot be started or reached
        """
        executable = self.find_executable(self.executable_path)
        self._user_data_dir = tempfile.mkdtemp(prefix="snapshot-profile-")
        args = self.build_args(self._user_data_dir)
        logger.debug(f"Launching {executable} ({self.profile.name} profile)")

        try:
            self._process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self._remove_user_data_dir()
            raise LaunchError(f"Failed to launch browser {executable}: {e}")

        try:
            ws_url = await asyncio.wait_for(self._read_ws_url(), timeout=self.launch_timeout)
            self._stderr_task = asyncio.create_task(self._drain_stderr())
            self.connection = self._connection_factory(ws_url)
            await self.connection.connect()
        except asyncio.TimeoutError:
            await self._teardown()
            raise LaunchError(
                f"Browser did not expose a DevTools endpoint within {self.launch_timeout} seconds"
            )
        except LaunchError:
            await self._teardown()
            raise
        except CDPError as e:
            await self._teardown()
            raise LaunchError(f"Failed to connect to browser: {e}")
        except BaseException:
            # Cancelled or failed unexpectedly: __aexit__ will not run, so reap here.
            await self._teardown()
            raise

        self._launched = True
        logger.info(f"Browser launched (pid {self._process.pid}, {self.profile.name} profile)")

    async def new_page(self) -> Page:
        """
        Open a new blank page in this browser.

        Raises:
            CaptureError: If the page cannot be created
        """
        if not self._launched or self._closed:
            raise CaptureError("Browser is not running")

        page = Page(self.connection)
        try:
            await page.initialize()
        except CaptureError:
            await page.close()
            raise
        return page

    async def close(self) -> None:
        """
        Close the browser. Safe to call more than once; only the first call acts.

        Never raises: failures are logged so they cannot mask the outcome of
        the work done with the browser.
        """
        if self._closed:
            return
        self._closed = True
        try:
            await self._teardown()
            logger.info("Browser closed")
        except Exception as e:
            logger.warning(f"Error closing browser: {e}")

    async def __aenter__(self) -> "Browser":
        await self.launch()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _read_ws_url(self) -> str:
        """Read stderr until Chromium announces its DevTools endpoint."""
        while True:
            raw = await self._process.stderr.readline()
            if not raw:
                returncode = await self._process.wait()
                tail = " | ".join(self._stderr_tail)
                raise LaunchError(
                    f"Browser exited with code {returncode} before it was ready: {tail}"
                )
            line = raw.decode(errors="replace").strip()
            self._stderr_tail.append(line)
            ws_url = CDPProtocol.parse_devtools_line(line)
            if ws_url:
                logger.debug(f"DevTools endpoint: {ws_url}")
                return ws_url

    async def _drain_stderr(self) -> None:
        """Keep reading stderr so the browser never blocks on a full pipe."""
        while True:
            raw = await self._process.stderr.readline()
            if not raw:
                return
            logger.debug(f"chromium: {raw.decode(errors='replace').rstrip()}")

    async def _teardown(self) -> None:
        """Ask the browser to exit, then make sure the process is gone."""
        exited_cleanly = False
        if self.connection is not None and self.connection.connected:
            try:
                await self.connection.send_command("Browser.close", timeout=self.close_timeout)
                exited_cleanly = True
            except CDPError as e:
                # The browser may drop the socket before answering Browser.close.
                logger.debug(f"Browser.close: {e}")
            await self.connection.disconnect()

        if self._process is not None and self._process.returncode is None:
            if not exited_cleanly:
                self._signal(self._process.terminate)
            try:
                await asyncio.wait_for(self._process.wait(), timeout=self.close_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Browser pid {self._process.pid} did not exit, killing it")
                self._signal(self._process.kill)
                await self._process.wait()

        if self._stderr_task is not None:
            self._stderr_task.cancel()
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass
            self._stderr_task = None

        self._remove_user_data_dir()

    @staticmethod
    def _signal(send: Callable[[], None]) -> None:
        try:
            send()
        except ProcessLookupError:
            pass

    def _remove_user_data_dir(self) -> None:
        if self._user_data_dir and os.path.isdir(self._user_data_dir):
            shutil.rmtree(self._user_data_dir, ignore_errors=True)
        self._user_data_dir = None

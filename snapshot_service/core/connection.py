"""
Connection module for the CDP transport.
Handles the WebSocket connection to a Chromium browser endpoint.
"""
import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple, Union

import websockets
from websockets.exceptions import ConnectionClosed

from snapshot_service.core.exceptions import CDPConnectionError, CDPTimeoutError
from snapshot_service.core.protocol import CDPProtocol

logger = logging.getLogger(__name__)

EventCallback = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


class CDPConnection:
    """
    Manages a WebSocket connection to Chrome DevTools Protocol.

    Commands and events use the flat protocol: page-level traffic carries a
    ``sessionId`` next to the method instead of being wrapped in
    ``Target.sendMessageToTarget``.
    """

    def __init__(self, ws_url: str, default_timeout: float = 30.0):
        """
        Initialize a CDP connection.

        Args:
            ws_url: Browser WebSocket URL
            default_timeout: Seconds to wait for a command response
        """
        self.ws_url = ws_url
        self.ws = None
        self.connected = False
        self.default_timeout = default_timeout
        self.message_id = 0
        self._closing = False
        self._callbacks: Dict[int, Tuple[str, asyncio.Future]] = {}
        self._event_listeners: Dict[Tuple[Optional[str], str], Set[EventCallback]] = {}
        self._listener_task: Optional[asyncio.Task] = None

    async def connect(self) -> None:
        """
        Connect to the browser endpoint and start the message listener.

        Raises:
            CDPConnectionError: If the WebSocket cannot be opened
        """
        if self.connected:
            return

        try:
            self.ws = await websockets.connect(
                self.ws_url,
                ping_interval=None,  # Chromium does not answer pings while busy
                max_size=None,  # Screenshots at 2x scale exceed the default limit
            )
        except Exception as e:
            self.ws = None
            raise CDPConnectionError(f"Failed to connect to CDP: {str(e)}")

        self.connected = True
        self._closing = False
        self._listener_task = asyncio.create_task(self._listen_for_messages())
        logger.debug(f"Connected to {self.ws_url}")

    async def disconnect(self) -> None:
        """
        Disconnect from the browser endpoint.
        """
        if not self.connected:
            return

        self._closing = True

        try:
            if self.ws:
                await asyncio.wait_for(self.ws.close(), timeout=5.0)
        except Exception as e:
            logger.warning(f"Error closing WebSocket: {str(e)}")
        finally:
            if self._listener_task and not self._listener_task.done():
                self._listener_task.cancel()
                try:
                    await self._listener_task
                except asyncio.CancelledError:
                    pass
            self._listener_task = None
            self.ws = None
            self.connected = False
            self._fail_pending("Connection closed")
            self._event_listeners.clear()

    async def send_command(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Send a command and wait for its response.

        Args:
            method: CDP method name
            params: CDP method parameters
            session_id: Target session to address, None for the browser itself
            timeout: Seconds to wait, defaults to ``default_timeout``

        Returns:
            The command result

        Raises:
            CDPConnectionError: If not connected or the connection drops
            CDPTimeoutError: If no response arrives in time
            CDPProtocolError: If the browser reports an error
        """
        if not self.ws or not self.connected:
            raise CDPConnectionError("Not connected to CDP")

        if self._closing:
            raise CDPConnectionError("Connection is closing")

        self.message_id += 1
        message_id = self.message_id
        message = CDPProtocol.format_command(message_id, method, params, session_id)

        future = asyncio.get_running_loop().create_future()
        self._callbacks[message_id] = (method, future)
        wait = timeout or self.default_timeout

        try:
            await self.ws.send(json.dumps(message))
            response = await asyncio.wait_for(future, timeout=wait)
        except asyncio.TimeoutError:
            raise CDPTimeoutError(f"Command {method} timed out after {wait} seconds")
        except ConnectionClosed as e:
            raise CDPConnectionError(f"Connection closed while sending {method}: {str(e)}")
        finally:
            self._callbacks.pop(message_id, None)

        return CDPProtocol.parse_response(response)

    def add_event_listener(
        self, event: str, callback: EventCallback, session_id: Optional[str] = None
    ) -> None:
        """
        Add an event listener for CDP events.

        Args:
            event: CDP event name
            callback: Sync or async callable receiving the event params
            session_id: Only deliver events from this target session
        """
        self._event_listeners.setdefault((session_id, event), set()).add(callback)

    def remove_session_listeners(self, session_id: str) -> None:
        """Drop every listener registered for a target session."""
        for key in [k for k in self._event_listeners if k[0] == session_id]:
            del self._event_listeners[key]

    async def _listen_for_messages(self) -> None:
        """
        Listen for messages from the browser and dispatch them.
        """
        try:
            async for message in self.ws:
                await self._process_message(message)
        except ConnectionClosed:
            if not self._closing:
                logger.warning("WebSocket connection closed unexpectedly")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self._closing:
                logger.error(f"Error in message listener: {str(e)}")
        finally:
            self.connected = False
            self._fail_pending("Browser connection lost")

    async def _process_message(self, message: Union[str, bytes]) -> None:
        """
        Route one message to its command future or event listeners.

        Args:
            message: Raw message from the WebSocket
        """
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            logger.error(f"Failed to parse CDP message: {message!r:.200}")
            return

        if "id" in data:
            entry = self._callbacks.get(data["id"])
            if entry is not None and not entry[1].done():
                entry[1].set_result(data)
            return

        method = data.get("method")
        if not method:
            return

        params = data.get("params", {})
        listeners = self._event_listeners.get((data.get("sessionId"), method), set())
        for listener in list(listeners):
            try:
                result = listener(params)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Error in event listener for {method}: {str(e)}")

    def _fail_pending(self, reason: str) -> None:
        """Fail every command still waiting for a response."""
        for method, future in self._callbacks.values():
            if not future.done():
                future.set_exception(CDPConnectionError(f"{reason} while waiting for {method}"))
        self._callbacks.clear()

"""
Protocol module for the CDP transport.
Contains helpers for building and parsing CDP messages.
"""
import re
from typing import Any, Dict, Optional

from snapshot_service.core.exceptions import CDPProtocolError

DEVTOOLS_LINE = re.compile(r"DevTools listening on (wss?://\S+)")


class CDPProtocol:
    """
    Handles CDP protocol messages.
    """

    @staticmethod
    def parse_devtools_line(line: str) -> Optional[str]:
        """
        Extract the browser WebSocket URL from a line of Chromium's stderr.

        Args:
            line: One decoded line of stderr output

        Returns:
            WebSocket URL, or None if the line does not announce it
        """
        match = DEVTOOLS_LINE.search(line)
        if match:
            return match.group(1)
        return None

    @staticmethod
    def format_command(
        message_id: int,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Format a CDP command.

        Args:
            message_id: Unique id the response will carry
            method: CDP method name
            params: CDP method parameters
            session_id: Flat-protocol session the command targets

        Returns:
            Formatted CDP command
        """
        command: Dict[str, Any] = {"id": message_id, "method": method}
        if params:
            command["params"] = params
        if session_id:
            command["sessionId"] = session_id
        return command

    @staticmethod
    def parse_response(response: Dict[str, Any]) -> Dict[str, Any]:
        """
        Parse a CDP response.

        Args:
            response: CDP response

        Returns:
            The result object (empty dict when the command has no result)

        Raises:
            CDPProtocolError: If the response contains an error
        """
        if "error" in response:
            error = response["error"]
            raise CDPProtocolError(
                error.get("message", "Unknown CDP error"),
                error.get("code", -1),
            )

        return response.get("result") or {}

"""
Exceptions module for the CDP transport.
Raised by CDPConnection and wrapped by the browser layer.
"""


class CDPError(Exception):
    """Base exception for all CDP transport errors."""
    pass


class CDPConnectionError(CDPError):
    """Raised when the DevTools WebSocket cannot be used (refused, closed, not connected)."""
    pass


class CDPTimeoutError(CDPError):
    """Raised when a command gets no response in time."""
    pass


class CDPProtocolError(CDPError):
    """
    Raised when the browser answers a command with an error object.

    Args:
        message: Error message reported by the browser
        code: CDP error code
    """

    def __init__(self, message: str, code: int = -1):
        super().__init__(f"CDP Error {code}: {message}")
        self.code = code

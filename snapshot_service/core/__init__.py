"""
Core module for Snapshot Service.
Contains the Chrome DevTools Protocol transport.
"""
from .connection import CDPConnection
from .exceptions import CDPConnectionError, CDPError, CDPProtocolError, CDPTimeoutError

__all__ = ['CDPConnection', 'CDPError', 'CDPConnectionError', 'CDPProtocolError', 'CDPTimeoutError']

"""
Browser module for Snapshot Service.
Contains classes for managing browser processes and pages.
"""
from .browser import Browser
from .exceptions import CaptureError, LaunchError
from .page import Page
from .profiles import MARKUP_PROFILE, WEBGL_PROFILE, LaunchProfile

__all__ = [
    'Browser',
    'Page',
    'LaunchProfile',
    'MARKUP_PROFILE',
    'WEBGL_PROFILE',
    'CaptureError',
    'LaunchError',
]

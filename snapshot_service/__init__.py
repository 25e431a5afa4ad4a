"""
Snapshot Service.
Renders HTML markup and allow-listed embeds in headless Chromium and returns images.
"""

__version__ = "0.1.0"

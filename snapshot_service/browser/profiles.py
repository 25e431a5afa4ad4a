"""
Launch profiles for the headless browser.
"""
from typing import Tuple

COMMON_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
)


class LaunchProfile:
    """
    Named, immutable set of Chromium command line switches.

    Args:
        name: Profile name used in logs
        args: Chromium switches added on top of the headless/debugging ones
    """

    def __init__(self, name: str, args: Tuple[str, ...]):
        self._name = name
        self._args = tuple(args)

    @property
    def name(self) -> str:
        return self._name

    @property
    def args(self) -> Tuple[str, ...]:
        return self._args

    def __repr__(self) -> str:
        return f"LaunchProfile({self._name!r})"


# Static markup needs no GPU.
MARKUP_PROFILE = LaunchProfile(
    "markup",
    COMMON_ARGS + (
        "--disable-accelerated-2d-canvas",
        "--no-first-run",
        "--no-zygote",
        "--disable-gpu",
    ),
)

# Embedded WebGL scenes render through SwiftShader.
WEBGL_PROFILE = LaunchProfile(
    "webgl",
    COMMON_ARGS + (
        "--enable-webgl",
        "--enable-webgl2",
        "--use-gl=angle",
        "--use-angle=swiftshader",
        "--ignore-gpu-blocklist",
    ),
)

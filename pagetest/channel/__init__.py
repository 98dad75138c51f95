"""
Control channels: the command/response seam between the core and a browser.
"""

from .base import Command, ControlChannel
from .playwright_channel import PlaywrightChannel

__all__ = [
    "Command",
    "ControlChannel",
    "PlaywrightChannel",
]

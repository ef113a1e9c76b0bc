"""System signal source implementations"""

from .base import BaseSystem
from .linux import LinuxSystem

__all__ = ["BaseSystem", "LinuxSystem"]

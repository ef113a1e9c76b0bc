"""Exception types for the LED monitor"""

from typing import Optional


class LedError(Exception):
    """Base class for all LED monitor errors"""


class ConfigurationError(LedError):
    """Invalid or missing required configuration"""


class ResourceUnavailable(LedError):
    """An LED or device node does not exist"""


class ExternalToolFailure(LedError):
    """An external command could not be run or reported failure"""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class TransientIOError(LedError):
    """Reading or writing a sysfs attribute failed"""

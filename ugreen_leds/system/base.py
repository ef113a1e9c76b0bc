"""Base system abstraction"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set
import logging
import shutil
import subprocess

from ..errors import ExternalToolFailure


class BaseSystem(ABC):
    """Abstract access to every signal source the monitors read

    The monitors never shell out or touch /sys directly, they go through an
    instance of this class. Tests substitute deterministic fakes.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """Initialize the system accessor

        Args:
            logger: Logger instance for output
        """
        self.logger = logger or logging.getLogger(__name__)

    @abstractmethod
    def block_device_links(self) -> Dict[str, str]:
        """Get the device topology link of every block device

        Returns:
            Dict[str, str]: Device name to sysfs link target
        """
        pass

    @abstractmethod
    def lsblk_scsi(self, column: str) -> str:
        """List SCSI devices with their name, the given column and transport

        Raises:
            ExternalToolFailure: If the listing command fails
        """
        pass

    @abstractmethod
    def product_name(self) -> Optional[str]:
        """Get the hardware product name, None if it cannot be determined"""
        pass

    @abstractmethod
    def smart_health(self, device: str) -> int:
        """Run the SMART health check for a device

        Returns:
            int: Raw return code of the health check

        Raises:
            ExternalToolFailure: If the check could not be run at all
        """
        pass

    @abstractmethod
    def zpool_status(self) -> str:
        """Get the storage pool status listing

        Raises:
            ExternalToolFailure: If the status command fails
        """
        pass

    @abstractmethod
    def dm_slaves(self, device: str) -> List[str]:
        """Get the underlying devices of a device-mapper device, in listing order"""
        pass

    @abstractmethod
    def block_device_present(self, device: str) -> bool:
        """Check whether the device's statistics node exists"""
        pass

    @abstractmethod
    def read_block_stat(self, device: str) -> str:
        """Read the raw I/O statistics of a device

        Raises:
            TransientIOError: If the statistics cannot be read
        """
        pass

    @abstractmethod
    def link_speed(self, interface: str) -> int:
        """Read the link speed of a network interface in Mbps

        Raises:
            TransientIOError: If the speed cannot be read or parsed
        """
        pass

    @abstractmethod
    def ip_route(self) -> str:
        """Get the routing table listing

        Raises:
            ExternalToolFailure: If the routing query fails
        """
        pass

    @abstractmethod
    def ping(self, address: str) -> bool:
        """Send one bounded echo probe, True if it was answered"""
        pass

    @abstractmethod
    def loaded_kernel_modules(self) -> Set[str]:
        """Names of the currently loaded kernel modules"""
        pass

    @abstractmethod
    def spawn(self, argv: List[str]) -> subprocess.Popen:
        """Start a long running helper process"""
        pass

    # Helper methods that can be used by all implementations

    def _execute_command(self, cmd: List[str], timeout: Optional[float] = None,
                         decode_method: str = 'utf-8') -> str:
        """Execute a command and return its output

        Args:
            cmd: Command to execute as list of strings
            timeout: Seconds to wait before giving up
            decode_method: Method to decode command output

        Returns:
            str: Command output as string

        Raises:
            ExternalToolFailure: If the command cannot be run or exits non-zero
        """
        self.logger.debug(f"Executing command: {' '.join(cmd)}")

        try:
            output_bytes = subprocess.check_output(cmd, stderr=subprocess.DEVNULL, timeout=timeout)
        except subprocess.CalledProcessError as e:
            raise ExternalToolFailure(f"Command {' '.join(cmd)} failed: {e}", e.returncode) from e
        except (OSError, subprocess.SubprocessError) as e:
            raise ExternalToolFailure(f"Error executing command {' '.join(cmd)}: {e}") from e

        try:
            return output_bytes.decode(decode_method)
        except UnicodeDecodeError:
            self.logger.debug(f"{decode_method} decoding failed, falling back to latin-1")
            return output_bytes.decode('latin-1')

    def _returncode(self, cmd: List[str], timeout: Optional[float] = None) -> int:
        """Run a command for its exit status only

        Raises:
            ExternalToolFailure: If the command cannot be started or times out
        """
        self.logger.debug(f"Executing command: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                                    timeout=timeout)
        except (OSError, subprocess.SubprocessError) as e:
            raise ExternalToolFailure(f"Error executing command {' '.join(cmd)}: {e}") from e
        return result.returncode

    def _check_command_exists(self, cmd: str) -> bool:
        """Check if a command exists in the system PATH

        Args:
            cmd: Command to check

        Returns:
            bool: True if command exists, False otherwise
        """
        return shutil.which(cmd) is not None

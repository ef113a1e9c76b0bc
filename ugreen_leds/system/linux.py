"""Linux implementation of the system abstraction"""

from typing import Dict, List, Optional, Set
import os
import subprocess

from .base import BaseSystem
from ..errors import ExternalToolFailure, TransientIOError


class LinuxSystem(BaseSystem):
    """Reads sysfs/procfs and shells out to the usual storage tools"""

    def __init__(self, logger=None, sys_path: str = "/sys", proc_path: str = "/proc",
                 command_timeout: float = 60):
        """Initialize LinuxSystem

        Args:
            logger: Logger instance
            sys_path: Mount point of sysfs
            proc_path: Mount point of procfs
            command_timeout: Seconds before an external command is abandoned
        """
        super().__init__(logger)
        self.sys_path = sys_path
        self.proc_path = proc_path
        self.command_timeout = command_timeout

    def _sys(self, *parts: str) -> str:
        return os.path.join(self.sys_path, *parts)

    def block_device_links(self) -> Dict[str, str]:
        """Get /sys/block link targets, which carry the ataN port token"""
        links = {}
        block_dir = self._sys("block")

        try:
            entries = sorted(os.listdir(block_dir))
        except OSError as e:
            self.logger.error(f"Cannot list {block_dir}: {e}")
            return links

        for name in entries:
            try:
                links[name] = os.readlink(os.path.join(block_dir, name))
            except OSError:
                continue

        return links

    def lsblk_scsi(self, column: str) -> str:
        return self._execute_command(["lsblk", "-S", "-o", f"name,{column},tran"],
                                     timeout=self.command_timeout)

    def product_name(self) -> Optional[str]:
        if not self._check_command_exists("dmidecode"):
            return None

        try:
            output = self._execute_command(["dmidecode", "--string", "system-product-name"],
                                           timeout=self.command_timeout)
        except ExternalToolFailure as e:
            self.logger.debug(f"Cannot read product name: {e}")
            return None

        return output.strip() or None

    def smart_health(self, device: str) -> int:
        # -n standby,0 returns without waking a sleeping disk
        return self._returncode(["smartctl", "-H", f"/dev/{device}", "-n", "standby,0"],
                                timeout=self.command_timeout)

    def zpool_status(self) -> str:
        return self._execute_command(["zpool", "status", "-L"], timeout=self.command_timeout)

    def dm_slaves(self, device: str) -> List[str]:
        try:
            return sorted(os.listdir(self._sys("block", device, "slaves")))
        except OSError as e:
            self.logger.debug(f"Cannot list slaves of {device}: {e}")
            return []

    def block_device_present(self, device: str) -> bool:
        return os.path.isfile(self._sys("class", "block", device, "stat"))

    def read_block_stat(self, device: str) -> str:
        try:
            with open(self._sys("class", "block", device, "stat"), "r") as f:
                return f.read()
        except OSError as e:
            raise TransientIOError(f"Cannot read I/O statistics of {device}: {e}") from e

    def link_speed(self, interface: str) -> int:
        speed_path = self._sys("class", "net", interface, "speed")
        try:
            with open(speed_path, "r") as f:
                return int(f.read().strip())
        except (OSError, ValueError) as e:
            raise TransientIOError(f"Cannot read link speed of {interface}: {e}") from e

    def ip_route(self) -> str:
        return self._execute_command(["ip", "route"], timeout=self.command_timeout)

    def ping(self, address: str) -> bool:
        return self._returncode(["ping", "-q", "-c", "1", "-W", "1", address], timeout=5) == 0

    def loaded_kernel_modules(self) -> Set[str]:
        modules_path = os.path.join(self.proc_path, "modules")
        try:
            with open(modules_path, "r") as f:
                return {line.split()[0] for line in f if line.strip()}
        except OSError as e:
            self.logger.debug(f"Cannot read {modules_path}: {e}")
            return set()

    def spawn(self, argv: List[str]) -> subprocess.Popen:
        self.logger.debug(f"Starting helper: {' '.join(argv)}")
        return subprocess.Popen(argv)

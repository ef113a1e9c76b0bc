"""Disk health monitoring for the slot LEDs"""

import logging
import os
import subprocess
import threading
from typing import Callable, List, Optional, Set

from .config import DiskMonitorConfig
from .disk_mapper import DiskMapper
from .errors import ExternalToolFailure, TransientIOError
from .led import Led, SYSFS_LED_PATH
from .models import RGB, DiskHealth, DiskState, DiskTable, ModelLayout, SlotBinding
from .pool_mapper import PoolMapper, parse_zpool_status
from .system import BaseSystem

DEFAULT_SMART_INTERVAL = 360
DEFAULT_ZPOOL_INTERVAL = 5
DEFAULT_ONLINE_INTERVAL = 5
DEFAULT_REFRESH_INTERVAL = 0.1

# smartctl sets this bit when the disk is in standby and was not checked
SMART_STANDBY_BIT = 32


def is_smart_failure(returncode: int) -> bool:
    """True if a smartctl return code reports anything besides standby"""
    return returncode & ~SMART_STANDBY_BIT != 0


def _stopping(stop_event: Optional[threading.Event]) -> bool:
    return stop_event is not None and stop_event.is_set()


def effective_interval(interval: float, default: float) -> float:
    return interval if interval > 0 else default


class DiskMonitor:
    """Keeps the slot LEDs in sync with disk health

    SMART, pool, online and I/O activity checks run as independent loops over
    one shared DiskTable. A disk that is in any failure state is skipped by
    the SMART, online and activity checks, so they never paint over an
    existing failure.
    """

    def __init__(self, config: DiskMonitorConfig, system: BaseSystem,
                 layouts: Optional[List[ModelLayout]] = None, led_path: str = SYSFS_LED_PATH,
                 logger: Optional[logging.Logger] = None):
        """Initialize the disk monitor

        Args:
            config: Disk monitor configuration
            system: Signal source for all device checks
            layouts: Extra model slot layouts
            led_path: Directory holding the LED class devices
            logger: Logger instance
        """
        self.config = config
        self.system = system
        self.layouts = layouts or []
        self.led_path = led_path
        self.logger = logger or logging.getLogger(__name__)

        self.table = DiskTable()
        self.bindings: List[SlotBinding] = []
        self.pool_mapper: Optional[PoolMapper] = None

        self._pool_fault_logged: Set[str] = set()
        self._helpers: List[subprocess.Popen] = []

    def setup(self) -> DiskTable:
        """Map the slots, initialize their LEDs and freeze the disk table

        Raises:
            ConfigurationError: If the slot mapping cannot be built
        """
        mapper = DiskMapper(self.config, self.system, layouts=self.layouts,
                            led_path=self.led_path, logger=self.logger)
        self.bindings = mapper.initialize_slots(self.table)
        self.log_slot_map()

        if self.config.check_zpool:
            self.pool_mapper = PoolMapper(self.table, self.system, debug=self.config.debug_zpool,
                                          logger=self.logger)
            self.pool_mapper.build()

        self.table.freeze()
        return self.table

    def log_slot_map(self) -> None:
        """Log which slot LEDs are bound to which disks"""
        bound = [binding for binding in self.bindings if binding.bound]
        self.logger.info(f"Monitoring {len(bound)} of {len(self.bindings)} disk slots")

        for binding in self.bindings:
            slot = binding.to_dict()
            self.logger.debug(f"Slot {slot['slot']}: led={slot['led']} key={slot['key'] or '-'} "
                              f"device={slot['device'] or '-'}")

    def led(self, led_name: str) -> Led:
        return Led(led_name, self.led_path)

    def health_color(self, health: DiskHealth) -> RGB:
        colors = {
            DiskHealth.HEALTHY: self.config.color_disk_health,
            DiskHealth.STANDBY: self.config.color_disk_standby,
            DiskHealth.SMART_FAILED: self.config.color_smart_fail,
            DiskHealth.POOL_FAULTED: self.config.color_zpool_fail,
            DiskHealth.OFFLINE: self.config.color_disk_unavail,
        }
        return colors[health]

    def _paint(self, state: DiskState, color: RGB) -> None:
        try:
            self.led(state.led_name).set_color(color)
        except TransientIOError as e:
            self.logger.warning(f"Cannot update LED for /dev/{state.device}: {e}")

    def check_smart(self, stop_event: Optional[threading.Event] = None) -> None:
        """Run one SMART pass over every disk that is still good"""
        for state in self.table:
            if _stopping(stop_event):
                return
            if not state.is_good():
                continue

            try:
                returncode = self.system.smart_health(state.device)
            except ExternalToolFailure as e:
                self.logger.warning(f"SMART check for /dev/{state.device} could not run: {e}")
                continue

            # smartctl may run for a long time, shutdown can arrive meanwhile
            if _stopping(stop_event):
                return

            if is_smart_failure(returncode) and state.mark_smart_failed():
                self._paint(state, self.config.color_smart_fail)
                self.logger.error(f"SMART Disk failure detected on /dev/{state.device} "
                                  f"(LED: {state.led_name}, smartctl status {returncode})")

    def check_pool(self, stop_event: Optional[threading.Event] = None) -> None:
        """Apply one pool status listing to the disk LEDs"""
        if self.pool_mapper is None:
            self.pool_mapper = PoolMapper(self.table, self.system, debug=self.config.debug_zpool,
                                          logger=self.logger)

        try:
            devices = parse_zpool_status(self.system.zpool_status())
        except ExternalToolFailure as e:
            self.logger.debug(f"Skipping zpool check: {e}")
            return

        for device in devices:
            if _stopping(stop_event):
                return
            if not device.state:
                continue

            led_name = self.pool_mapper.led_for(device.name)
            state = self.table.get(led_name) if led_name else None

            if state is None:
                if device.failed and self.config.debug_zpool:
                    self.logger.warning(
                        f"ZPOOL device /dev/{device.name} (state: {device.state}) not found in LED mapping"
                    )
                continue

            if device.failed:
                # Pool failures always win over whatever the LED shows
                state.mark_pool_faulted()
                self._paint(state, self.config.color_zpool_fail)

                if device.name not in self._pool_fault_logged:
                    if self.config.debug_zpool:
                        self.logger.error(f"ZPOOL Disk failure detected on /dev/{device.name} "
                                          f"(state: {device.state}) -> LED: {led_name}")
                    else:
                        self.logger.error(f"ZPOOL Disk failure detected on /dev/{device.name} "
                                          f"(state: {device.state})")
                    self._pool_fault_logged.add(device.name)
                continue

            health = state.clear_pool_fault()
            if health is not None:
                self._paint(state, self.health_color(health))
                if self.config.debug_zpool:
                    self.logger.info(f"ZPOOL Disk /dev/{device.name} recovered (state: {device.state})")

            self._pool_fault_logged.discard(device.name)

    def check_online(self, stop_event: Optional[threading.Event] = None) -> None:
        """Flag disks whose device node has disappeared"""
        for state in self.table:
            if _stopping(stop_event):
                return
            if not state.is_good():
                continue

            if self.system.block_device_present(state.device):
                continue

            if state.mark_offline():
                self._paint(state, self.config.color_disk_unavail)
                self.logger.warning(f"Disk /dev/{state.device} went offline (LED: {state.led_name})")

    def check_io(self, stop_event: Optional[threading.Event] = None) -> None:
        """Blink the LED of every disk whose I/O counters changed"""
        for state in self.table:
            if _stopping(stop_event):
                return
            if not state.is_good():
                continue

            try:
                snapshot = self.system.read_block_stat(state.device)
            except TransientIOError:
                continue

            if state.record_activity(snapshot):
                try:
                    self.led(state.led_name).shot()
                except TransientIOError as e:
                    self.logger.debug(f"Blink failed for {state.led_name}: {e}")

    def _helper_parameters(self) -> List[str]:
        params = []
        for state in self.table:
            params.extend([state.device, state.led_name])
        return params

    def _spawn_helper(self, argv: List[str]) -> bool:
        try:
            self._helpers.append(self.system.spawn(argv))
        except OSError as e:
            self.logger.warning(f"Failed to start {argv[0]}: {e}")
            return False
        self.logger.info(f"Started {argv[0]}")
        return True

    def start_helpers(self) -> bool:
        """Start the external standby and blink helpers if installed

        Returns:
            True if the blink helper took over the I/O activity check
        """
        params = self._helper_parameters()

        if os.path.isfile(self.config.standby_mon_path):
            self._spawn_helper([
                self.config.standby_mon_path,
                str(self.config.standby_check_interval),
                str(self.config.color_disk_standby),
                str(self.config.color_disk_health),
            ] + params)

        if os.path.isfile(self.config.blink_mon_path):
            return self._spawn_helper([
                self.config.blink_mon_path,
                str(self.config.led_refresh_interval),
            ] + params)

        return False

    def stop_helpers(self) -> None:
        for helper in self._helpers:
            if helper.poll() is None:
                helper.terminate()
                try:
                    helper.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    helper.kill()
        self._helpers = []

    def _loop(self, name: str, interval: float, check: Callable[[threading.Event], None],
              stop_event: threading.Event) -> None:
        self.logger.debug(f"Starting {name} check every {interval}s")

        while not stop_event.wait(interval):
            try:
                check(stop_event)
            except Exception as e:
                # One failed tick must not end the loop
                self.logger.exception(f"Error during {name} check: {e}")

        self.logger.debug(f"Stopped {name} check")

    def run(self, stop_event: threading.Event) -> None:
        """Run all enabled checks until ``stop_event`` is set

        Raises:
            ConfigurationError: If the slot mapping cannot be built
        """
        if not self.table.frozen:
            self.setup()

        if not len(self.table):
            self.logger.warning("No disks mapped to LEDs, disk monitor has nothing to do")
            return

        blink_helper = self.start_helpers()

        loops = []
        if self.config.check_smart:
            loops.append(("SMART", effective_interval(self.config.check_smart_interval,
                                                      DEFAULT_SMART_INTERVAL), self.check_smart))
        if self.config.check_zpool:
            loops.append(("zpool", effective_interval(self.config.check_zpool_interval,
                                                      DEFAULT_ZPOOL_INTERVAL), self.check_pool))
        loops.append(("disk online", effective_interval(self.config.check_disk_online_interval,
                                                        DEFAULT_ONLINE_INTERVAL), self.check_online))
        if not blink_helper:
            loops.append(("I/O activity", effective_interval(self.config.led_refresh_interval,
                                                             DEFAULT_REFRESH_INTERVAL), self.check_io))

        threads = [
            threading.Thread(target=self._loop, args=(name, interval, check, stop_event),
                             name=f"diskmon-{name}", daemon=True)
            for name, interval, check in loops
        ]

        try:
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()
        finally:
            self.stop_helpers()

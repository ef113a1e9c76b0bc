"""Data models for the LED monitor"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional

DEFAULT_RGB_TEXT = "255 255 255"


@dataclass(frozen=True)
class RGB:
    """An LED color as written to the sysfs ``color`` attribute"""

    r: int
    g: int
    b: int

    @classmethod
    def parse(cls, text: Optional[str]) -> "RGB":
        """Parse an ``"R G B"`` string

        Anything other than exactly three whitespace-separated tokens yields
        white. Tokens that are not integers read as 0. Values are not
        clamped, so ``"300 0 0"`` stays ``RGB(300, 0, 0)``.

        Args:
            text: Color string, e.g. from the config file or sysfs

        Returns:
            Parsed RGB value
        """
        parts = (text or "").split()
        if len(parts) != 3:
            return cls.parse(DEFAULT_RGB_TEXT)
        return cls(*(_to_int(part) for part in parts))

    def __str__(self) -> str:
        return f"{self.r} {self.g} {self.b}"


def _to_int(token: str) -> int:
    try:
        return int(token)
    except ValueError:
        return 0


class DiskHealth(Enum):
    """Health of a monitored disk slot"""

    HEALTHY = "healthy"
    # Owned by the external standby helper, never set by the monitor itself
    STANDBY = "standby"
    SMART_FAILED = "smart_failed"
    POOL_FAULTED = "pool_faulted"
    OFFLINE = "offline"


@dataclass
class DiskState:
    """Mutable health record for one LED/device binding

    Every flag is read and written under ``lock`` so that the polling loops
    never interleave partial updates for the same disk.
    """

    led_name: str                    # LED name (e.g. disk1)
    device: str                      # Block device name (e.g. sda)
    smart_failed: bool = False       # Sticky until restart
    pool_faulted: bool = False       # Cleared when the pool reports healthy
    offline: bool = False            # Sticky, see DESIGN.md
    last_activity: Optional[str] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def _health(self) -> DiskHealth:
        if self.offline:
            return DiskHealth.OFFLINE
        if self.smart_failed:
            return DiskHealth.SMART_FAILED
        if self.pool_faulted:
            return DiskHealth.POOL_FAULTED
        return DiskHealth.HEALTHY

    @property
    def health(self) -> DiskHealth:
        """Current health, highest priority failure first"""
        with self.lock:
            return self._health()

    def is_good(self) -> bool:
        """True while no failure flag is set (healthy or standby)"""
        with self.lock:
            return self._health() == DiskHealth.HEALTHY

    def mark_smart_failed(self) -> bool:
        """Flag a SMART failure, returns True if it was not flagged before"""
        with self.lock:
            changed = not self.smart_failed
            self.smart_failed = True
            return changed

    def mark_pool_faulted(self) -> bool:
        """Flag a pool fault, returns True if it was not flagged before"""
        with self.lock:
            changed = not self.pool_faulted
            self.pool_faulted = True
            return changed

    def clear_pool_fault(self) -> Optional[DiskHealth]:
        """Clear a pool fault

        Returns:
            The resulting health if a fault was cleared, None otherwise
        """
        with self.lock:
            if not self.pool_faulted:
                return None
            self.pool_faulted = False
            return self._health()

    def mark_offline(self) -> bool:
        """Flag the device as gone, returns True if it was online before"""
        with self.lock:
            changed = not self.offline
            self.offline = True
            return changed

    def record_activity(self, snapshot: str) -> bool:
        """Store an I/O statistics snapshot, returns True if it changed"""
        with self.lock:
            if snapshot == self.last_activity:
                return False
            self.last_activity = snapshot
            return True


class DiskTable:
    """LED to disk bindings shared by the disk monitor loops

    The table is filled once during startup and then frozen. After that only
    the per-disk health fields change, each behind its own lock.
    """

    def __init__(self):
        self._by_led: Dict[str, DiskState] = {}
        self._led_by_device: Dict[str, str] = {}
        self._frozen = False

    def register(self, led_name: str, device: str) -> DiskState:
        """Bind an LED to a block device

        Args:
            led_name: LED name
            device: Block device name

        Returns:
            The new DiskState

        Raises:
            RuntimeError: If the table has been frozen
            ValueError: If the LED or device is already bound
        """
        if self._frozen:
            raise RuntimeError("disk table is frozen")
        if led_name in self._by_led:
            raise ValueError(f"LED {led_name} is already bound to {self._by_led[led_name].device}")
        if device in self._led_by_device:
            raise ValueError(f"Device {device} is already bound to {self._led_by_device[device]}")

        state = DiskState(led_name=led_name, device=device)
        self._by_led[led_name] = state
        self._led_by_device[device] = led_name
        return state

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, led_name: str) -> Optional[DiskState]:
        return self._by_led.get(led_name)

    def led_for_device(self, device: str) -> Optional[str]:
        return self._led_by_device.get(device)

    def device_to_led(self) -> Dict[str, str]:
        return dict(self._led_by_device)

    def states(self) -> List[DiskState]:
        """All disk states in slot registration order"""
        return list(self._by_led.values())

    def __len__(self) -> int:
        return len(self._by_led)

    def __contains__(self, led_name: str) -> bool:
        return led_name in self._by_led

    def __iter__(self) -> Iterator[DiskState]:
        return iter(self.states())


@dataclass
class SlotBinding:
    """Result of resolving one slot LED"""

    slot: int                        # 1-based slot index
    led_name: str                    # LED name (e.g. disk3)
    key: str = ""                    # Addressing key (ata3, 2:0:0:0, serial)
    device: str = ""                 # Bound block device, empty if none

    @property
    def bound(self) -> bool:
        return bool(self.device)

    def to_dict(self) -> dict:
        return {
            "slot": self.slot,
            "led": self.led_name,
            "key": self.key,
            "device": self.device,
        }


@dataclass
class ModelLayout:
    """Slot ordering for one hardware model family"""

    prefix: str                      # Product name prefix (e.g. DXP6800)
    ata: List[str] = field(default_factory=list)
    hctl: List[str] = field(default_factory=list)

    def order_for(self, method: str) -> Optional[List[str]]:
        """Key order for an addressing method, None to keep the default"""
        order = getattr(self, method, None) if method in ("ata", "hctl") else None
        return list(order) if order else None

    def matches(self, product_name: str) -> bool:
        return bool(product_name) and product_name.startswith(self.prefix)

    @classmethod
    def from_dict(cls, data: dict) -> "ModelLayout":
        """Create ModelLayout from dictionary"""
        return cls(
            prefix=str(data.get("prefix", "")),
            ata=[str(key) for key in data.get("ata") or []],
            hctl=[str(key) for key in data.get("hctl") or []],
        )

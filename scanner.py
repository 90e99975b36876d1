"""
scanner.py
Camera QR scanning for the debit screen.

The scanner walks IDLE -> STARTING -> SCANNING -> PROCESSING -> IDLE.
Payloads are only accepted while SCANNING, so a second decode arriving
while the first is handled is dropped.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable

import cards

logger = logging.getLogger(__name__)

REAR_HINTS = ("back", "rear", "environment")


class ScanState(enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    SCANNING = "scanning"
    PROCESSING = "processing"


class ScannerError(Exception):
    pass


@dataclass(frozen=True)
class CameraDevice:
    id: str
    label: str = ""


def pick_camera(devices: list[CameraDevice]) -> CameraDevice | None:
    if not devices:
        return None
    for device in devices:
        label = device.label.lower()
        if any(hint in label for hint in REAR_HINTS):
            return device
    return devices[0]


class QRScanner:
    def __init__(self, camera, on_decoded: Callable[[str], None]):
        self.camera = camera
        self.on_decoded = on_decoded
        self.state = ScanState.IDLE
        self.device: CameraDevice | None = None
        # incremented on every successful start
        self.session = 0

    @property
    def active(self) -> bool:
        return self.state is not ScanState.IDLE

    def start(self) -> CameraDevice:
        if self.state is not ScanState.IDLE:
            raise ScannerError(f"Cannot start while {self.state.value}")
        self.state = ScanState.STARTING
        try:
            device = pick_camera(self.camera.list_devices())
            if device is None:
                raise ScannerError("No camera found.")
            self.camera.start(device.id)
        except Exception:
            self.state = ScanState.IDLE
            raise
        self.device = device
        self.session += 1
        self.state = ScanState.SCANNING
        logger.info(f"Scanning with camera {device.label or device.id}")
        return device

    def stop(self) -> None:
        if self.state is ScanState.IDLE:
            return
        try:
            self.camera.stop()
        finally:
            self.state = ScanState.IDLE
            self.device = None

    def rescan(self) -> CameraDevice:
        self.stop()
        return self.start()

    def handle_payload(self, payload: str | None) -> bool:
        if not payload:
            return False
        if self.state is not ScanState.SCANNING:
            logger.debug(f"Ignoring QR payload while {self.state.value}")
            return False
        self.state = ScanState.PROCESSING
        self.stop()
        self.on_decoded(payload)
        return True

    def feed_frame(self, image) -> bool:
        """Decode one captured frame; returns True if it produced a member id."""
        if self.state is not ScanState.SCANNING:
            return False
        return self.handle_payload(cards.decode_qr(image))

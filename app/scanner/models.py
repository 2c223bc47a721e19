"""
==============================================================================
Scanner Models Module
==============================================================================

Value types shared by the scan classifier, the station layer and the
transports.

Includes:
- ScanMode: business context attached to a scan
- ScanSource: where a scan came from (keyboard wedge, manual, camera)
- ClassifierState: idle / accumulating
- KeyEvent: one raw keydown forwarded by the host
- ScanEvent: a completed, immutable scan

==============================================================================
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# DOM tag names whose keystrokes belong to the focused control, not the scanner
TEXT_INPUT_TARGETS = frozenset({"input", "textarea", "select", "contenteditable"})

TERMINATOR_KEY = "Enter"


class ScanMode(str, enum.Enum):
    """
    Scan mode enumeration.

    Selected by the operator (a tab on the scanning surface) or supplied as
    the station's initial mode. The mode only labels a scan and picks the
    description shown to the operator; it never changes how keystrokes are
    classified.

    - LOOKUP: Show product details for the scanned code
    - INVENTORY: Count or adjust stock for the scanned code
    - PICKING: Confirm an item against the current pick list
    - RECEIVING: Book an item in from a supplier delivery
    """

    LOOKUP = "lookup"
    INVENTORY = "inventory"
    PICKING = "picking"
    RECEIVING = "receiving"

    def __str__(self) -> str:
        """Return the enum value as string."""
        return self.value

    @property
    def label(self) -> str:
        """Human-readable mode name."""
        return {
            ScanMode.LOOKUP: "Lookup",
            ScanMode.INVENTORY: "Inventory",
            ScanMode.PICKING: "Picking",
            ScanMode.RECEIVING: "Receiving",
        }[self]

    @property
    def description(self) -> str:
        """Operator-facing description shown under the mode tab."""
        return {
            ScanMode.LOOKUP: "Scan a barcode to look up product details and stock levels.",
            ScanMode.INVENTORY: "Scan a barcode to count or adjust the stock on hand.",
            ScanMode.PICKING: "Scan items as you pick them to confirm the order lines.",
            ScanMode.RECEIVING: "Scan incoming items to book them in from the delivery.",
        }[self]


class ScanSource(str, enum.Enum):
    """Origin of a completed scan."""

    KEYBOARD = "keyboard"
    MANUAL = "manual"
    CAMERA = "camera"

    def __str__(self) -> str:
        return self.value


class ClassifierState(str, enum.Enum):
    """
    Keystroke classifier state.

    State Machine:

        ┌──────┐  code character   ┌──────────────┐
        │ IDLE │ ────────────────▶ │ ACCUMULATING │ ◀─┐ code character
        └──────┘                   └──────────────┘ ──┘ (timer replaced)
           ▲                              │
           │   Enter (emit or reject),    │
           │   inactivity expiry,         │
           └────── dispatch ──────────────┘
    """

    IDLE = "idle"
    ACCUMULATING = "accumulating"

    def __str__(self) -> str:
        return self.value


class KeyEvent(BaseModel):
    """
    A raw keydown forwarded by the host.

    Attributes:
        key: The key value as reported by the host (e.g. "A", "7", "Enter")
        target_is_text_input: True when the event was aimed at a text control
        timestamp_ms: Host timestamp in milliseconds (None = use the local clock)
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1)
    target_is_text_input: bool = Field(default=False)
    timestamp_ms: Optional[float] = Field(default=None, ge=0)

    @classmethod
    def from_target(
        cls,
        key: str,
        target: Optional[str] = None,
        timestamp_ms: Optional[float] = None
    ) -> "KeyEvent":
        """Build an event from a DOM-style target tag name."""
        is_text = isinstance(target, str) and target.strip().lower() in TEXT_INPUT_TARGETS
        return cls(key=key, target_is_text_input=is_text, timestamp_ms=timestamp_ms)

    @property
    def is_terminator(self) -> bool:
        return self.key == TERMINATOR_KEY


class ScanEvent(BaseModel):
    """
    A completed scan. Immutable once created.

    Attributes:
        code: The scanned code, already trimmed
        mode: Mode current when the scan completed
        timestamp: When the scan completed (UTC)
        source: Keyboard wedge, manual entry or camera decode
    """

    model_config = ConfigDict(frozen=True)

    code: str = Field(..., min_length=1)
    mode: ScanMode
    timestamp: datetime
    source: ScanSource = Field(default=ScanSource.KEYBOARD)

    def to_message(self) -> dict:
        """Serialize for the WebSocket `scan` message."""
        return {
            "type": "scan",
            "code": self.code,
            "mode": self.mode.value,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source.value,
        }


class ScanAuditEntry(BaseModel):
    """
    Audit record for one completed scan.

    Serialized for the audit service as `{barcode, scanType, userId, notes}`.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    mode: ScanMode
    timestamp: datetime
    actor_id: int

    @classmethod
    def from_event(cls, event: ScanEvent, actor_id: int) -> "ScanAuditEntry":
        return cls(
            code=event.code,
            mode=event.mode,
            timestamp=event.timestamp,
            actor_id=actor_id,
        )

    def to_payload(self) -> dict:
        return {
            "barcode": self.code,
            "scanType": self.mode.value,
            "userId": self.actor_id,
            "notes": f"Barcode scanned in {self.mode.value} mode",
        }

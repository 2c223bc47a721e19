"""
==============================================================================
Scanner Package - Scan Classification & Dispatch
==============================================================================

Keyboard-wedge scan detection, manual entry and camera decoding.

Classes:
--------
- ScanClassifier: Keystroke classifier and scan dispatcher
- ClassifierProfile: Classification parameters (surface / global presets)
- ScanHistory: Recent scans, newest first
- KeyEventHub: Subscribe/unsubscribe source of key events
- CameraSession: Scoped camera acquisition
- FrameDecoder: Barcode decoding from frames
- ManualScheduler / AsyncioScheduler: Injected timers

==============================================================================
"""

from .camera import CameraSession
from .classifier import ScanClassifier
from .decoder import FrameDecoder
from .events import KeyEventHub, Subscription
from .history import ScanHistory
from .models import ClassifierState, KeyEvent, ScanAuditEntry, ScanEvent, ScanMode, ScanSource
from .profiles import GLOBAL_PROFILE, SURFACE_PROFILE, ClassifierProfile
from .timers import AsyncioScheduler, ManualScheduler

__all__ = [
    "AsyncioScheduler",
    "CameraSession",
    "ClassifierProfile",
    "ClassifierState",
    "FrameDecoder",
    "GLOBAL_PROFILE",
    "KeyEvent",
    "KeyEventHub",
    "ManualScheduler",
    "SURFACE_PROFILE",
    "ScanAuditEntry",
    "ScanClassifier",
    "ScanEvent",
    "ScanHistory",
    "ScanMode",
    "ScanSource",
    "Subscription",
]

from __future__ import annotations

from .client import BridgeClient, BridgeSendError
from .inbound import InboundRelay, build_inbound_envelope, extract_text
from .notifier import CoreNotifier
from .server import create_control_app, start_control_server

__all__ = [
    "BridgeClient",
    "BridgeSendError",
    "CoreNotifier",
    "InboundRelay",
    "build_inbound_envelope",
    "create_control_app",
    "extract_text",
    "start_control_server",
]

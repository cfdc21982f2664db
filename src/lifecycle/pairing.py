"""Console pairing-code display."""

from __future__ import annotations

import sys
from typing import TextIO

import qrcode


def render_pairing_code(payload: str, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    out.write("\nScan this code with the messaging app to link the relay:\n\n")
    qr = qrcode.QRCode(border=1)
    qr.add_data(payload)
    qr.make(fit=True)
    qr.print_ascii(out=out, invert=True)
    # Raw payload for terminals that can't render the block characters.
    out.write(f"\nPairing payload: {payload}\n\n")
    out.flush()

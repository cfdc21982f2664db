#!/usr/bin/env python3
"""Send a message through a running relay, the way the core does.

Usage:
    relay-send.py <to> <message...> [--url http://localhost:3002]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from src.relay.client import BridgeClient, BridgeSendError


async def _send(url: str, to: str, text: str) -> int:
    client = BridgeClient(url, min_interval_s=0)
    try:
        await client.send(to, text)
    except BridgeSendError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await client.close()
    print(f"Sent to {to}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Send a message via the relay")
    parser.add_argument("to", help="Destination chat id (e.g. 123@s.us)")
    parser.add_argument("message", nargs="+", help="Message text")
    parser.add_argument("--url", default="http://localhost:3002", help="Relay base URL")
    args = parser.parse_args()
    return asyncio.run(_send(args.url, args.to, " ".join(args.message)))


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Switch Relay - messaging session <-> core orchestrator bridge

- Incoming chat messages on the live session are POSTed to the core's
  inbound callback as {"type": "inbound", "from", "content", "chat_id"}.
- The core POSTs {"to", "content"} to /send and the relay delivers it.
- Dropped connections are retried; a logged-out session needs re-pairing.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from src.auth import clear_auth_state
from src.config import RelayConfig, get_relay_config
from src.lifecycle.connection import ConnectionManager
from src.providers import XMPPSessionProvider
from src.registry import SessionRegistry
from src.relay import CoreNotifier, InboundRelay, start_control_server
from src.utils import load_env


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # slixmpp is chatty at INFO.
    logging.getLogger("slixmpp").setLevel(logging.WARNING)


log = logging.getLogger("bridge")


async def main(cfg: RelayConfig) -> None:
    registry = SessionRegistry()
    notifier = CoreNotifier(cfg.core_callback, timeout_s=cfg.core_timeout_s)
    provider = XMPPSessionProvider(
        cfg.xmpp.server,
        port=cfg.xmpp.port,
        use_tls=cfg.xmpp.use_tls,
        jid=cfg.xmpp.jid,
        password=cfg.xmpp.password,
    )
    manager = ConnectionManager(
        provider,
        auth_dir=cfg.auth_dir,
        registry=registry,
        inbound=InboundRelay(notifier.notify),
        policy=cfg.reconnect,
    )

    runner, host, port = await start_control_server(registry, host=cfg.host, port=cfg.port)
    log.info(f"Relay listening on http://{host}:{port} (core callback {cfg.core_callback})")

    try:
        await manager.connect()
        while True:
            await asyncio.sleep(1)
    finally:
        await manager.close()
        await notifier.close()
        await runner.cleanup()


def run() -> None:
    parser = argparse.ArgumentParser(description="Messaging session <-> core relay")
    parser.add_argument(
        "--logout",
        action="store_true",
        help="Delete stored credentials (to pair again) and exit",
    )
    args = parser.parse_args()

    load_env()
    cfg = get_relay_config()
    configure_logging(cfg.log_level)

    if args.logout:
        removed = clear_auth_state(cfg.auth_dir)
        log.info(f"Removed {removed} credential file(s) from {cfg.auth_dir}")
        return

    try:
        asyncio.run(main(cfg))
    except KeyboardInterrupt:
        log.info("Shutting down...")


if __name__ == "__main__":
    run()

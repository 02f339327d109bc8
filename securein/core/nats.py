from __future__ import annotations
import json
from typing import Sequence
from nats.aio.client import Client as NATS
from .config import get_settings
from ..app_logger import get_logger

_settings = get_settings()
_nats = NATS()
log = get_logger("nats")

async def nats_connect():
    if not _settings.nats_enabled:
        return
    if not _nats.is_connected:
        servers: Sequence[str] = [u.strip() for u in _settings.nats_urls.split(",") if u.strip()]
        await _nats.connect(servers=servers, allow_reconnect=False, connect_timeout=2)

async def nats_close():
    try:
        if _nats.is_connected:
            await _nats.drain()
    except Exception as e:
        log.warning("nats drain failed: %s", e)

async def publish_pass_event(evt: dict):
    """
    evt = {
      "type": "pass.issued" | "pass.entry" | "pass.exit" | "pass.deleted",
      "pass_id": str,
      "at": iso8601,
      ...
    }
    Best effort: a failed publish is logged and swallowed.
    """
    if not _settings.nats_enabled:
        return
    try:
        await nats_connect()
        await _nats.publish(_settings.nats_subject_passes, json.dumps(evt).encode("utf-8"))
    except Exception as e:
        log.warning("could not publish %s for %s: %s", evt.get("type"), evt.get("pass_id"), e)

"""FastAPI liveness and status endpoints.

Purely operational: nothing here affects digest behaviour.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI

from ottpulse.store import StateStore

logger = logging.getLogger(__name__)

app = FastAPI(title="OTT Pulse")


def _get_broadcaster():
    return getattr(app.state, "broadcaster", None)


@app.get("/")
async def liveness() -> dict:
    return {"status": "alive", "time": datetime.now(timezone.utc).isoformat()}


@app.get("/status")
async def status() -> dict:
    store = StateStore.get_instance()
    broadcaster = _get_broadcaster()
    return {
        "status": "running",
        "cycle_state": broadcaster.state.value if broadcaster else "unknown",
        "last_error": broadcaster.last_error if broadcaster else "",
        "seen_links": len(store.seen),
        "members": len(store.members),
        "group_id": store.group_id,
        "last_run": store.last_run,
    }

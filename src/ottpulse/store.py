"""JSON-file persistent state for the digest bot.

Holds the bounded seen-link cache, registered group members, the admin
and group ids, and the time of the last successful digest. All writes
go through one asyncio.Lock, run in a worker thread and land via
write-to-temp + rename, so a crash mid-write never leaves an unparseable
file. A failed write is logged and the in-memory state stays
authoritative for the process.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections import OrderedDict
from collections.abc import Iterable, Iterator
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_SEEN_CAP = 500


class SeenLinkCache:
    """Insertion-ordered set of link hashes capped at ``cap`` (FIFO eviction)."""

    def __init__(self, cap: int = DEFAULT_SEEN_CAP, hashes: Iterable[str] = ()) -> None:
        if cap < 1:
            raise ValueError("cap must be positive")
        self.cap = cap
        self._entries: OrderedDict[str, None] = OrderedDict()
        for h in hashes:
            self.add(h)

    def __contains__(self, link_hash: object) -> bool:
        return link_hash in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def add(self, link_hash: str) -> None:
        if link_hash in self._entries:
            return
        self._entries[link_hash] = None
        while len(self._entries) > self.cap:
            self._entries.popitem(last=False)

    def to_list(self) -> list[str]:
        return list(self._entries)


@dataclass
class Member:
    """A group member who joined while the bot was present."""

    preferred_language: str = ""
    joined_at: str = ""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class StateStore:
    """Single-writer JSON store for bot state."""

    _instance: StateStore | None = None

    def __init__(self, path: str | Path, seen_cap: int = DEFAULT_SEEN_CAP) -> None:
        self.path = Path(path)
        self.seen = SeenLinkCache(seen_cap)
        self.members: dict[str, Member] = {}
        self.admin_id: int | None = None
        self.group_id: int | None = None
        self.last_run: str | None = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: str | Path, seen_cap: int = DEFAULT_SEEN_CAP) -> StateStore:
        """Read state from disk; absent or corrupt files give empty state."""
        store = cls(path, seen_cap)
        if not store.path.exists():
            logger.info("No state file at %s, starting empty", store.path)
            return store
        try:
            raw = json.loads(store.path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise TypeError("state root is not an object")
            store._apply(raw)
        except (OSError, json.JSONDecodeError, TypeError, ValueError):
            logger.exception("Corrupt or unreadable state file %s, using defaults", store.path)
            store = cls(path, seen_cap)
        logger.info(
            "State loaded: %d seen links, %d members", len(store.seen), len(store.members)
        )
        return store

    @classmethod
    def create(cls, path: str | Path, seen_cap: int = DEFAULT_SEEN_CAP) -> StateStore:
        """Load state and register it as the process-wide instance."""
        cls._instance = cls.load(path, seen_cap)
        return cls._instance

    @classmethod
    def get_instance(cls) -> StateStore:
        if cls._instance is None:
            raise RuntimeError("StateStore not initialised")
        return cls._instance

    def _apply(self, raw: dict) -> None:
        seen_links = raw.get("seen_links") or []
        if not isinstance(seen_links, list):
            raise TypeError("seen_links is not a list")
        users = raw.get("users") or {}
        if not isinstance(users, dict):
            raise TypeError("users is not an object")
        for h in seen_links:
            if isinstance(h, str):
                self.seen.add(h)
        for user_id, info in users.items():
            if isinstance(info, dict):
                self.members[str(user_id)] = Member(
                    preferred_language=str(info.get("preferred_language", "")),
                    joined_at=str(info.get("joined_at", "")),
                )
        admin_id = raw.get("admin_id")
        self.admin_id = int(admin_id) if admin_id is not None else None
        group_id = raw.get("group_id")
        self.group_id = int(group_id) if group_id is not None else None
        self.last_run = raw.get("last_run")

    def to_dict(self) -> dict:
        return {
            "seen_links": self.seen.to_list(),
            "users": {uid: asdict(m) for uid, m in self.members.items()},
            "admin_id": self.admin_id,
            "group_id": self.group_id,
            "last_run": self.last_run,
        }

    def _write(self, data: dict) -> bool:
        """Atomically persist current state. Returns False on failure."""
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                json.dumps(data, ensure_ascii=False, indent=2) + "\n",
                encoding="utf-8",
            )
            os.replace(tmp, self.path)
            return True
        except OSError:
            logger.exception("Failed to write state file %s (keeping in-memory state)", self.path)
            return False

    # ------------------------------------------------------------------
    # Seen links
    # ------------------------------------------------------------------

    def is_processed(self, link_hash: str) -> bool:
        return link_hash in self.seen

    async def mark_processed(self, link_hashes: Iterable[str]) -> bool:
        async with self._lock:
            for h in link_hashes:
                self.seen.add(h)
            return await asyncio.to_thread(self._write, self.to_dict())

    # ------------------------------------------------------------------
    # Audience / admin
    # ------------------------------------------------------------------

    async def set_group_id(self, group_id: int) -> bool:
        async with self._lock:
            self.group_id = group_id
            return await asyncio.to_thread(self._write, self.to_dict())

    async def set_admin_id(self, admin_id: int) -> bool:
        async with self._lock:
            self.admin_id = admin_id
            return await asyncio.to_thread(self._write, self.to_dict())

    async def register_member(self, user_id: int, preferred_language: str = "") -> bool:
        """Add a member on join. Existing members are left untouched."""
        async with self._lock:
            key = str(user_id)
            if key in self.members:
                return True
            self.members[key] = Member(
                preferred_language=preferred_language, joined_at=_now_iso()
            )
            return await asyncio.to_thread(self._write, self.to_dict())

    async def set_preferred_language(self, user_id: int, language: str) -> bool:
        async with self._lock:
            member = self.members.setdefault(str(user_id), Member(joined_at=_now_iso()))
            member.preferred_language = language
            return await asyncio.to_thread(self._write, self.to_dict())

    async def record_run(self, when: datetime | None = None) -> bool:
        async with self._lock:
            self.last_run = (when or datetime.now(timezone.utc)).isoformat()
            return await asyncio.to_thread(self._write, self.to_dict())

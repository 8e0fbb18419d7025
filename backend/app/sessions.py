"""In-memory match sessions.

A session is the host side of a match: it owns the single current
``GameState`` and replaces it wholesale after each engine call. It also holds
the point value staged on the keypad and any captured report signatures.
"""
from __future__ import annotations

from asyncio import Lock
from dataclasses import dataclass, field
from datetime import datetime
import logging
import time
import uuid
from typing import Dict, Optional

from .config import MATCH_SESSION_TTL_SECONDS, MAX_MATCH_SESSIONS
from .exceptions import MatchNotFound
from .scoring import molkky
from .services.validation import MatchSetup
from .time_utils import utcnow

logger = logging.getLogger(__name__)


class NoPendingSelection(ValueError):
    """Raised when a throw is confirmed without a staged point value."""


@dataclass
class MatchSession:
    id: str
    state: molkky.GameState
    selected_points: Optional[int] = None
    signatures: Dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def _replace(self, state: molkky.GameState) -> molkky.GameState:
        self.state = state
        self.selected_points = None
        self.updated_at = utcnow()
        return state

    def select(self, points: int) -> int:
        if self.state.status != "PLAYING":
            raise molkky.MatchNotInProgress(
                f"cannot select points while match is {self.state.status}"
            )
        self.selected_points = molkky.validate_points(points, self.state.rules)
        self.updated_at = utcnow()
        return self.selected_points

    def clear_selection(self) -> None:
        self.selected_points = None
        self.updated_at = utcnow()

    def confirm(self) -> molkky.GameState:
        if self.selected_points is None:
            raise NoPendingSelection("no point value selected")
        return self.throw(self.selected_points)

    def throw(self, points: int) -> molkky.GameState:
        return self._replace(molkky.apply_throw(self.state, points))

    def undo(self) -> molkky.GameState:
        return self._replace(molkky.undo(self.state))

    def reset(self) -> molkky.GameState:
        self.signatures.clear()
        return self._replace(molkky.reset_to_setup(self.state))

    def restart(
        self, setup: MatchSetup, rules: Optional[molkky.Rules] = None
    ) -> molkky.GameState:
        self.signatures.clear()
        return self._replace(
            molkky.start_match(
                setup.name_a,
                setup.roster_a,
                setup.name_b,
                setup.roster_b,
                setup.starting_team,
                rules=rules or self.state.rules,
            )
        )


class MatchSessionStore:
    """Async-safe session registry with sliding expiry and an LRU bound."""

    def __init__(
        self,
        ttl_seconds: float = MATCH_SESSION_TTL_SECONDS,
        max_sessions: int = MAX_MATCH_SESSIONS,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_sessions = max_sessions
        self._lock = Lock()
        # insertion order doubles as recency order
        self._store: dict[str, tuple[MatchSession, float]] = {}

    def _purge_expired(self, now: float) -> None:
        expired = [sid for sid, (_, expires_at) in self._store.items() if expires_at <= now]
        for sid in expired:
            self._store.pop(sid, None)
            logger.info("Match session %s expired", sid)

    async def create(self, state: molkky.GameState) -> MatchSession:
        session = MatchSession(id=uuid.uuid4().hex, state=state)
        now = time.monotonic()
        async with self._lock:
            self._purge_expired(now)
            while len(self._store) >= self._max_sessions:
                oldest = next(iter(self._store))
                self._store.pop(oldest)
                logger.info("Evicted least recently used match session %s", oldest)
            self._store[session.id] = (session, now + self._ttl)
        logger.info("Created match session %s", session.id)
        return session

    async def get(self, session_id: str) -> MatchSession:
        now = time.monotonic()
        async with self._lock:
            entry = self._store.pop(session_id, None)
            if not entry:
                raise MatchNotFound(session_id)
            session, expires_at = entry
            if expires_at <= now:
                logger.info("Match session %s expired", session_id)
                raise MatchNotFound(session_id)
            self._store[session_id] = (session, now + self._ttl)
            return session

    async def discard(self, session_id: str) -> None:
        async with self._lock:
            if self._store.pop(session_id, None) is None:
                raise MatchNotFound(session_id)

    async def clear(self) -> None:
        async with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


match_sessions = MatchSessionStore()


def get_store() -> MatchSessionStore:
    """FastAPI dependency returning the process-wide session store."""
    return match_sessions

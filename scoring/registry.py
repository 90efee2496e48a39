"""
In-process registry of live scoring sessions.

Operations for one match are serialised by a per-match lock; different
matches never wait on each other.  The registry lock guards the session and
lock tables; it is held while a match is opened but never while a ball is
scored.
"""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from scoring.errors import Err, InvalidReference, Ok, RuleViolation
from scoring.models import MatchSetup
from scoring.session import ScoringSession

logger = logging.getLogger(__name__)

Result = Union[Ok, Err]


class MatchRegistry:

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self._sessions: Dict[str, ScoringSession] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _entry(self, match_id: str) -> Tuple[Optional[ScoringSession], Optional[threading.Lock]]:
        with self._registry_lock:
            return self._sessions.get(match_id), self._locks.get(match_id)

    def _is_live(self, match_id: str, session: ScoringSession) -> bool:
        with self._registry_lock:
            return self._sessions.get(match_id) is session

    def _build(self, setup: MatchSetup, events: Optional[Iterable[Dict[str, Any]]] = None) -> ScoringSession:
        session = ScoringSession.from_config(setup, self.config)
        if events is not None:
            session.load_events(events)
        return session

    def open_match(self, setup: MatchSetup, events: Optional[Iterable[Dict[str, Any]]] = None) -> Result:
        """Register a new session, optionally restored from a persisted event log."""
        with self._registry_lock:
            if setup.match_id in self._sessions:
                return Err(RuleViolation(f"Match {setup.match_id} is already open", code="duplicate_match"))
            session = self._build(setup, events)
            self._sessions[setup.match_id] = session
            self._locks.setdefault(setup.match_id, threading.Lock())
        logger.info("[Registry] Opened match %s (%d live)", setup.match_id, len(self._sessions))
        return Ok(session.get_snapshot())

    def close_match(self, match_id: str) -> Result:
        session, lock = self._entry(match_id)
        if session is None or lock is None:
            return Err(InvalidReference(f"Unknown match {match_id!r}"))
        with lock:
            with self._registry_lock:
                if self._sessions.get(match_id) is not session:
                    return Err(InvalidReference(f"Unknown match {match_id!r}"))
                del self._sessions[match_id]
                del self._locks[match_id]
        logger.info("[Registry] Closed match %s", match_id)
        return Ok(session.events())

    def get(self, match_id: str) -> Optional[ScoringSession]:
        with self._registry_lock:
            return self._sessions.get(match_id)

    def match_ids(self) -> List[str]:
        with self._registry_lock:
            return list(self._sessions)

    def __contains__(self, match_id: str) -> bool:
        return self.get(match_id) is not None

    # ------------------------------------------------------------------ #
    #  Per-match operations
    # ------------------------------------------------------------------ #

    def _call(self, match_id: str, action: Callable[[ScoringSession], Result]) -> Result:
        session, lock = self._entry(match_id)
        if session is None or lock is None:
            return Err(InvalidReference(f"Unknown match {match_id!r}"))
        with lock:
            # Closed while this call waited for the lock.
            if not self._is_live(match_id, session):
                return Err(InvalidReference(f"Match {match_id!r} was closed"))
            return action(session)

    def submit_ball(self, match_id: str, intent) -> Result:
        return self._call(match_id, lambda s: s.submit_ball(intent))

    def select_incoming_batsman(self, match_id: str, player_id: str) -> Result:
        return self._call(match_id, lambda s: s.select_incoming_batsman(player_id))

    def switch_strike(self, match_id: str) -> Result:
        return self._call(match_id, lambda s: s.switch_strike())

    def undo(self, match_id: str) -> Result:
        return self._call(match_id, lambda s: s.undo())

    def abandon(self, match_id: str, reason: Optional[str] = None) -> Result:
        return self._call(match_id, lambda s: s.abandon(reason))

    def get_snapshot(self, match_id: str) -> Result:
        return self._call(match_id, lambda s: Ok(s.get_snapshot()))

"""
scoring/history.py
==================

Event log and undo.

Every accepted action is appended to the log as one of four events.  Undo
pops the last event and rebuilds the Match and its statistics by replaying
what is left onto a fresh Match created from the immutable MatchSetup.  The
same replay restores a session from a persisted log after a restart.

Usage
-----
    history = HistoryManager(setup, fmt)
    history.record(BallRecorded(ball))
    result = history.undo_last()
    if result.ok:
        match, stats = history.replay()
"""

import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple, Union

from scoring.ball_processor import apply_ball, apply_incoming_batsman, apply_switch_strike
from scoring.errors import Err, InternalInconsistency, NoHistoryError, Ok
from scoring.format_config import FormatConfig
from scoring.lifecycle import abandon, all_out_at
from scoring.models import Ball, Match, MatchSetup
from scoring.stats import StatsAggregator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BallRecorded:
    ball: Ball
    kind: ClassVar[str] = "ball_recorded"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "ball": self.ball.to_dict()}


@dataclass(frozen=True)
class BatsmanSelected:
    player_id: str
    kind: ClassVar[str] = "batsman_selected"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "player_id": self.player_id}


@dataclass(frozen=True)
class StrikeSwitched:
    kind: ClassVar[str] = "strike_switched"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind}


@dataclass(frozen=True)
class MatchAbandoned:
    reason: Optional[str] = None
    kind: ClassVar[str] = "match_abandoned"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "reason": self.reason}


Event = Union[BallRecorded, BatsmanSelected, StrikeSwitched, MatchAbandoned]


def event_from_dict(data: Dict[str, Any]) -> Event:
    kind = data.get("type")
    if kind == BallRecorded.kind:
        return BallRecorded(Ball.from_dict(data["ball"]))
    if kind == BatsmanSelected.kind:
        return BatsmanSelected(data["player_id"])
    if kind == StrikeSwitched.kind:
        return StrikeSwitched()
    if kind == MatchAbandoned.kind:
        return MatchAbandoned(data.get("reason"))
    raise ValueError(f"Unknown history event type: {kind!r}")


# ---------------------------------------------------------------------------
# Replay
# ---------------------------------------------------------------------------

def apply_event(match: Match, stats: StatsAggregator, event: Event, fmt: FormatConfig) -> List[str]:
    """Apply one logged event; returns the lifecycle events it fired."""
    if isinstance(event, BallRecorded):
        fired = apply_ball(match, event.ball, fmt)
        stats.update(event.ball)
        return fired
    if isinstance(event, BatsmanSelected):
        apply_incoming_batsman(match, event.player_id)
    elif isinstance(event, StrikeSwitched):
        apply_switch_strike(match)
    elif isinstance(event, MatchAbandoned):
        abandon(match, event.reason)
    else:
        raise InternalInconsistency(f"Cannot apply {type(event).__name__}")
    return []


def replay(setup: MatchSetup, events: Iterable[Event], fmt: FormatConfig) -> Tuple[Match, StatsAggregator]:
    match = Match.create(setup)
    stats = StatsAggregator(balls_per_over=fmt.balls_per_over)
    for event in events:
        apply_event(match, stats, event, fmt)
    return match, stats


def verify(match: Match, stats: StatsAggregator, fmt: FormatConfig) -> None:
    """
    Self-check of the derived state.

    Raises InternalInconsistency when the incremental statistics differ from
    a rebuild off the Ball stream, or when an innings breaks run
    conservation, the legal-ball limit or the wicket bound.
    """
    bpo = fmt.balls_per_over
    balls = [b for innings in match.innings for b in innings.balls()]
    if StatsAggregator.replay(balls, bpo) != stats:
        raise InternalInconsistency(f"Match {match.match_id}: statistics diverged from the ball log")

    for innings in match.innings:
        counted = sum(b.total_runs for b in innings.balls()) + innings.awarded_penalty_runs
        if counted != innings.total_runs:
            raise InternalInconsistency(
                f"Match {match.match_id}: innings {innings.number} total {innings.total_runs} "
                f"but balls add up to {counted}"
            )
        legal = sum(1 for b in innings.balls() if b.is_legal)
        if legal != innings.legal_balls or legal > fmt.balls_per_innings:
            raise InternalInconsistency(
                f"Match {match.match_id}: innings {innings.number} has {legal} legal balls "
                f"(recorded {innings.legal_balls})"
            )
        for over in innings.overs:
            if over.legal_balls > bpo or any(b.bowler_id != over.bowler_id for b in over.balls):
                raise InternalInconsistency(
                    f"Match {match.match_id}: over {over.number + 1} of innings {innings.number} is malformed"
                )
        if innings.wickets > fmt.max_wickets:
            raise InternalInconsistency(
                f"Match {match.match_id}: {innings.wickets} wickets in innings {innings.number}"
            )
    if match.current.wickets > all_out_at(match, fmt):
        raise InternalInconsistency(f"Match {match.match_id}: wickets exceed the all-out count")


# ---------------------------------------------------------------------------
# History manager
# ---------------------------------------------------------------------------

class HistoryManager:
    """Ordered log of accepted actions for one match."""

    def __init__(self, setup: MatchSetup, fmt: FormatConfig, events: Optional[Iterable[Event]] = None):
        self.setup = setup
        self.fmt = fmt
        self.events: List[Event] = list(events or [])

    def __len__(self) -> int:
        return len(self.events)

    @property
    def can_undo(self) -> bool:
        return bool(self.events)

    def record(self, event: Event) -> None:
        self.events.append(event)

    def undo_last(self) -> Union[Ok, Err]:
        """Drop the last event; Ok(event) or Err(NoHistoryError)."""
        if not self.events:
            logger.info("Match %s: undo requested with an empty history", self.setup.match_id)
            return Err(NoHistoryError())
        event = self.events.pop()
        logger.info("Match %s: undid %s (%d events left)", self.setup.match_id, event.kind, len(self.events))
        return Ok(event)

    def replay(self) -> Tuple[Match, StatsAggregator]:
        return replay(self.setup, self.events, self.fmt)

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self.events]

    @classmethod
    def from_list(cls, setup: MatchSetup, fmt: FormatConfig, data: Iterable[Dict[str, Any]]) -> "HistoryManager":
        return cls(setup, fmt, [event_from_dict(d) for d in data])

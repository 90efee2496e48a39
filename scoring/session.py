"""
scoring/session.py
==================

ScoringSession: the external interface of the engine for one match.

Every operation returns ``Ok(snapshot)`` on success or ``Err(error)`` for a
situation the scorer can correct (RuleViolation, InvalidReference,
NoHistoryError).  Accepted actions are logged to the history, applied to the
owned Match, and published to subscribers as event dicts:

    ball_applied, innings_complete, match_complete, batsman_selected,
    strike_switched, ball_undone, match_abandoned

Each event carries the match id and the post-action snapshot.  A ball and
any innings or match completion it triggers also carry its commentary line.

Usage
-----
    session = ScoringSession(setup)
    session.subscribe(print)
    session.submit_ball(BallIntent(bowler_id="b1", striker_id="a1", non_striker_id="a2", runs=4))
    session.undo()
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from scoring.broadcast import EventBroadcaster
from scoring.commentary import CommentaryEngine
from scoring.errors import Err, InternalInconsistency, Ok, RuleViolation
from scoring.format_config import FormatConfig, get_format
from scoring.history import (
    BallRecorded,
    BatsmanSelected,
    Event,
    HistoryManager,
    MatchAbandoned,
    StrikeSwitched,
    apply_event,
    event_from_dict,
    verify,
)
from scoring.lifecycle import INNINGS_COMPLETE
from scoring.models import BallIntent, Match, MatchSetup
from scoring.rules import DismissalRule, RuleValidator, build_dismissal_policy
from scoring.snapshot import build_snapshot
from scoring.stats import StatsAggregator

logger = logging.getLogger(__name__)

Result = Union[Ok, Err]


class ScoringSession:

    def __init__(self, setup: MatchSetup, format_config: Optional[FormatConfig] = None,
                 policy: Optional[Dict[Any, DismissalRule]] = None,
                 commentary: Optional[CommentaryEngine] = None,
                 broadcaster: Optional[EventBroadcaster] = None,
                 self_check: bool = False):
        self.setup = setup
        self.fmt = format_config or get_format(setup.match_format, overs=setup.overs)
        self.validator = RuleValidator(self.fmt, policy)
        self.commentary = commentary or CommentaryEngine(format_config=self.fmt)
        self.broadcaster = broadcaster or EventBroadcaster()
        self.self_check = self_check
        self.history = HistoryManager(setup, self.fmt)
        self.match = Match.create(setup)
        self.stats = StatsAggregator(balls_per_over=self.fmt.balls_per_over)
        self.last_commentary: Optional[str] = None
        logger.info("Match %s: session opened (%s, %d overs), %s bat first",
                    setup.match_id, self.fmt.name, self.fmt.overs, setup.batting_first.name)

    # ------------------------------------------------------------------ #
    #  Construction helpers
    # ------------------------------------------------------------------ #

    @classmethod
    def from_config(cls, setup: MatchSetup, config: Dict[str, Any], **kwargs) -> "ScoringSession":
        """Build a session from the ``scoring`` and ``commentary`` blocks of config.yaml."""
        scoring_cfg = config.get("scoring") or {}
        commentary_cfg = config.get("commentary") or {}
        fmt = get_format(setup.match_format or scoring_cfg.get("default_format"),
                         overs=setup.overs,
                         overrides=scoring_cfg.get("format_overrides"))
        kwargs.setdefault("policy", build_dismissal_policy(scoring_cfg.get("dismissal_policy")))
        kwargs.setdefault("commentary", CommentaryEngine(
            data_path=commentary_cfg.get("pack_path"),
            seed=commentary_cfg.get("seed"),
            format_config=fmt,
        ))
        kwargs.setdefault("self_check", bool(scoring_cfg.get("self_check", False)))
        return cls(setup, fmt, **kwargs)

    @classmethod
    def from_events(cls, setup: MatchSetup, events: Iterable[Union[Event, Dict[str, Any]]],
                    **kwargs) -> "ScoringSession":
        """Restore a session by replaying a persisted event log; nothing is published."""
        session = cls(setup, **kwargs)
        session.load_events(events)
        return session

    def load_events(self, events: Iterable[Union[Event, Dict[str, Any]]]) -> None:
        """Replay a persisted log onto this fresh session."""
        if len(self.history):
            raise InternalInconsistency(f"Match {self.setup.match_id}: events loaded into a live session")
        for event in events:
            if isinstance(event, dict):
                event = event_from_dict(event)
            self._apply(event)
            self.history.record(event)
        logger.info("Match %s: restored from %d events", self.setup.match_id, len(self.history))

    # ------------------------------------------------------------------ #
    #  External interface
    # ------------------------------------------------------------------ #

    def submit_ball(self, intent: Union[BallIntent, Dict[str, Any]]) -> Result:
        if isinstance(intent, dict):
            try:
                intent = BallIntent.from_dict(intent)
            except TypeError as exc:
                return Err(RuleViolation(f"Malformed ball intent: {exc}", code="malformed_intent"))

        outcome = self.validator.validate(self.match, intent)
        if not outcome.ok:
            return Err(outcome.error)

        ball = outcome.value
        line = self.commentary.describe(self.match, self.stats, ball)
        event = BallRecorded(ball)
        fired = self._apply(event)
        self.history.record(event)
        self.last_commentary = line
        logger.info("Match %s: %s %s", self.match.match_id, ball.label, line)

        snapshot = self.get_snapshot()
        self._publish("ball_applied", snapshot, commentary=line, ball=ball.to_dict())
        number = ball.innings_number
        for name in fired:
            self._publish(name, snapshot, commentary=line, innings=number)
            if name == INNINGS_COMPLETE:
                number = min(number + 1, len(self.match.innings))
        return Ok(snapshot)

    def select_incoming_batsman(self, player_id: str) -> Result:
        outcome = self.validator.validate_incoming_batsman(self.match, player_id)
        if not outcome.ok:
            return Err(outcome.error)
        return self._accept(BatsmanSelected(player_id), "batsman_selected", player_id=player_id)

    def switch_strike(self) -> Result:
        outcome = self.validator.validate_switch_strike(self.match)
        if not outcome.ok:
            return Err(outcome.error)
        return self._accept(StrikeSwitched(), "strike_switched")

    def abandon(self, reason: Optional[str] = None) -> Result:
        if self.match.is_terminal:
            return Err(RuleViolation(f"Match is already {self.match.state.value}",
                                     code="match_not_in_progress"))
        return self._accept(MatchAbandoned(reason), "match_abandoned", reason=reason)

    def undo(self) -> Result:
        result = self.history.undo_last()
        if not result.ok:
            return result
        self.match, self.stats = self.history.replay()
        if self.self_check:
            verify(self.match, self.stats, self.fmt)
        snapshot = self.get_snapshot()
        self._publish("ball_undone", snapshot, undone=result.value.to_dict())
        return Ok(snapshot)

    def get_snapshot(self) -> Dict[str, Any]:
        return build_snapshot(self.match, self.stats, self.fmt)

    def subscribe(self, listener: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
        return self.broadcaster.subscribe(listener)

    def events(self) -> List[Dict[str, Any]]:
        """The event log as plain dicts, ready to persist."""
        return self.history.to_list()

    # ------------------------------------------------------------------ #
    #  Internals
    # ------------------------------------------------------------------ #

    def _apply(self, event: Event) -> List[str]:
        fired = apply_event(self.match, self.stats, event, self.fmt)
        if self.self_check:
            verify(self.match, self.stats, self.fmt)
        return fired

    def _accept(self, event: Event, name: str, **extra) -> Result:
        self._apply(event)
        self.history.record(event)
        snapshot = self.get_snapshot()
        self._publish(name, snapshot, **extra)
        return Ok(snapshot)

    def _publish(self, name: str, snapshot: Dict[str, Any], **extra) -> None:
        event = {"type": name, "match_id": self.match.match_id, "snapshot": snapshot}
        event.update(extra)
        self.broadcaster.publish(event)

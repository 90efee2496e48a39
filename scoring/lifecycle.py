"""
scoring/lifecycle.py
====================

Innings / match lifecycle manager.

The lifecycle is a small table-driven state machine:

    SETUP -> INNINGS_ONE_IN_PROGRESS -> INNINGS_ONE_COMPLETE
          -> INNINGS_TWO_IN_PROGRESS -> INNINGS_TWO_COMPLETE -> MATCH_COMPLETE

with ABANDONED reachable from every non-terminal state.  MATCH_COMPLETE and
ABANDONED are terminal.  INNINGS_ONE_COMPLETE and INNINGS_TWO_COMPLETE are
passed through immediately: the second innings opens without any external
confirmation, and the match completes as soon as the chase ends.

Who won, and by how much, is a reporting question answered by
scoring.scorecard.match_result on top of MATCH_COMPLETE.
"""

import logging
from typing import Dict, FrozenSet, List, Optional

from scoring.errors import InternalInconsistency
from scoring.format_config import FormatConfig
from scoring.models import Innings, LifecycleState, Match, MatchStatus

logger = logging.getLogger(__name__)

S = LifecycleState

_TRANSITIONS: Dict[LifecycleState, FrozenSet[LifecycleState]] = {
    S.SETUP:                   frozenset({S.INNINGS_ONE_IN_PROGRESS, S.ABANDONED}),
    S.INNINGS_ONE_IN_PROGRESS: frozenset({S.INNINGS_ONE_COMPLETE, S.ABANDONED}),
    S.INNINGS_ONE_COMPLETE:    frozenset({S.INNINGS_TWO_IN_PROGRESS, S.ABANDONED}),
    S.INNINGS_TWO_IN_PROGRESS: frozenset({S.INNINGS_TWO_COMPLETE, S.ABANDONED}),
    S.INNINGS_TWO_COMPLETE:    frozenset({S.MATCH_COMPLETE}),
    S.MATCH_COMPLETE:          frozenset(),
    S.ABANDONED:               frozenset(),
}

_STATUS: Dict[LifecycleState, MatchStatus] = {
    S.SETUP:                   MatchStatus.NOT_STARTED,
    S.INNINGS_ONE_IN_PROGRESS: MatchStatus.IN_PROGRESS,
    S.INNINGS_ONE_COMPLETE:    MatchStatus.IN_PROGRESS,
    S.INNINGS_TWO_IN_PROGRESS: MatchStatus.IN_PROGRESS,
    S.INNINGS_TWO_COMPLETE:    MatchStatus.IN_PROGRESS,
    S.MATCH_COMPLETE:          MatchStatus.COMPLETED,
    S.ABANDONED:               MatchStatus.ABANDONED,
}

INNINGS_COMPLETE = "innings_complete"
MATCH_COMPLETE = "match_complete"


def can_transition(match: Match, new_state: LifecycleState) -> bool:
    return new_state in _TRANSITIONS[match.state]


def transition(match: Match, new_state: LifecycleState) -> None:
    """Move *match* to *new_state*, keeping ``status`` in step."""
    if not can_transition(match, new_state):
        raise InternalInconsistency(
            f"Illegal lifecycle transition {match.state.value} -> {new_state.value} "
            f"for match {match.match_id}"
        )
    logger.info("Match %s: %s -> %s", match.match_id, match.state.value, new_state.value)
    match.state = new_state
    match.status = _STATUS[new_state]


def ensure_started(match: Match) -> None:
    """The first accepted action of a match opens innings one."""
    if match.state == S.SETUP:
        transition(match, S.INNINGS_ONE_IN_PROGRESS)


def all_out_at(match: Match, fmt: FormatConfig) -> int:
    """Wickets that end the current innings: 10, or fewer for a short squad."""
    squad = len(match.batting_team.players)
    return max(1, min(fmt.max_wickets, squad - 1))


def check_innings_end(match: Match, fmt: FormatConfig) -> List[str]:
    """
    Close the current innings if it is over and advance the lifecycle.

    Returns the lifecycle event names that fired, in order.
    """
    innings = match.current
    if innings.completed or match.is_terminal:
        return []

    reason: Optional[str] = None
    if innings.wickets >= all_out_at(match, fmt):
        reason = "all_out"
    elif innings.legal_balls >= fmt.balls_per_innings:
        reason = "overs_complete"
    elif innings.target is not None and innings.total_runs >= innings.target:
        reason = "target_reached"
    if reason is None:
        return []

    innings.completed = True
    innings.end_reason = reason
    logger.info("Match %s: innings %d complete (%s) at %d/%d in %s overs",
                match.match_id, innings.number, reason, innings.total_runs,
                innings.wickets, innings.overs_text(fmt.balls_per_over))

    if innings.number == 1:
        transition(match, S.INNINGS_ONE_COMPLETE)
        open_second_innings(match)
        transition(match, S.INNINGS_TWO_IN_PROGRESS)
        # Carried penalty runs may already reach the target.
        return [INNINGS_COMPLETE] + check_innings_end(match, fmt)

    transition(match, S.INNINGS_TWO_COMPLETE)
    transition(match, S.MATCH_COMPLETE)
    return [INNINGS_COMPLETE, MATCH_COMPLETE]


def open_second_innings(match: Match) -> Innings:
    """Swap the sides and start the chase."""
    first = match.innings[0]
    carried = match.pending_penalty_runs
    second = Innings(
        number=2,
        batting_team_id=first.bowling_team_id,
        bowling_team_id=first.batting_team_id,
        total_runs=carried,
        awarded_penalty_runs=carried,
        target=first.total_runs + 1,
    )
    match.pending_penalty_runs = 0
    match.innings.append(second)
    logger.info("Match %s: %s need %d to win", match.match_id,
                match.setup.team(second.batting_team_id).name, second.target)
    return second


def award_fielding_penalty(match: Match, runs: int) -> None:
    """
    Credit penalty runs to the side currently in the field.

    In the first innings the fielding side has yet to bat, so the runs wait
    for innings two; in the second innings they go onto the first-innings
    total, which raises the target.
    """
    if runs <= 0:
        return
    if match.current_innings == 1:
        match.pending_penalty_runs += runs
        return
    first = match.innings[0]
    first.awarded_penalty_runs += runs
    first.total_runs += runs
    match.current.target = first.total_runs + 1
    logger.info("Match %s: %d penalty runs to %s, target now %d", match.match_id, runs,
                match.setup.team(first.batting_team_id).name, match.current.target)


def abandon(match: Match, reason: Optional[str] = None) -> None:
    transition(match, S.ABANDONED)
    match.abandon_reason = reason

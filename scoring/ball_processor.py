"""
scoring/ball_processor.py
=========================

Applies already-validated actions to the owned Match state.

Nothing in here checks Laws; scoring.rules has done that.  The processor
only keeps the model consistent: overs open and close, totals follow the
balls (run conservation), strike follows the crossings, a wicket vacates
the dismissed batsman's end, and the lifecycle is advanced after every ball.

Every function mutates *match* in place.  They are deterministic, so
replaying the same actions onto a fresh Match reproduces the same state;
scoring.history relies on that for undo.
"""

import logging
from typing import List

from scoring.errors import InternalInconsistency
from scoring.format_config import FormatConfig
from scoring.lifecycle import award_fielding_penalty, check_innings_end, ensure_started
from scoring.models import Ball, Innings, Match, Over

logger = logging.getLogger(__name__)


def _swap_ends(innings: Innings) -> None:
    innings.striker_id, innings.non_striker_id = innings.non_striker_id, innings.striker_id


def apply_ball(match: Match, ball: Ball, fmt: FormatConfig) -> List[str]:
    """
    Record *ball* in the current innings.

    Returns the lifecycle events ("innings_complete", "match_complete")
    fired by this delivery.
    """
    ensure_started(match)
    innings = match.current
    if ball.innings_number != innings.number:
        raise InternalInconsistency(
            f"Ball for innings {ball.innings_number} applied during innings {innings.number}"
        )

    if not innings.openers_set:
        innings.striker_id, innings.non_striker_id = ball.striker_id, ball.non_striker_id
        innings.batting_order.extend([ball.striker_id, ball.non_striker_id])

    bpo = fmt.balls_per_over
    over = innings.open_over(bpo)
    if over is None:
        over = Over(number=len(innings.overs), bowler_id=ball.bowler_id)
        innings.overs.append(over)
        logger.debug("Match %s: over %d opened by %s", match.match_id, over.number + 1,
                     match.setup.player_name(ball.bowler_id))
    over.balls.append(ball)

    innings.total_runs += ball.total_runs
    if ball.is_legal:
        innings.legal_balls += 1
    award_fielding_penalty(match, ball.fielding_penalty_runs)

    if ball.crossings % 2 == 1:
        _swap_ends(innings)

    if ball.dismissal is not None:
        out = ball.dismissal.player_out_id
        innings.wickets += 1
        innings.dismissed.append(out)
        if innings.striker_id == out:
            innings.striker_id = None
        elif innings.non_striker_id == out:
            innings.non_striker_id = None
        else:
            raise InternalInconsistency(f"Dismissed player {out} was not at the crease")

    if over.is_complete(bpo):
        _swap_ends(innings)
        logger.debug("Match %s: end of over %d, %d runs, %s", match.match_id, over.number + 1,
                     over.runs, "maiden" if over.is_maiden(bpo) else "no maiden")

    return check_innings_end(match, fmt)


def apply_incoming_batsman(match: Match, player_id: str) -> None:
    """Put *player_id* at the vacant end (striker's end first at innings start)."""
    ensure_started(match)
    innings = match.current
    if innings.striker_id is None:
        innings.striker_id = player_id
    elif innings.non_striker_id is None:
        innings.non_striker_id = player_id
    else:
        raise InternalInconsistency("No vacant end for the incoming batsman")
    innings.batting_order.append(player_id)


def apply_switch_strike(match: Match) -> None:
    """Scorer correction: swap striker and non-striker."""
    _swap_ends(match.current)

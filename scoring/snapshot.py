"""
Read-only view of a match handed to callers and broadcast to subscribers.

A snapshot is a plain dict built from the Match and its statistics, so it
can be compared, serialised to JSON, or rendered without touching the
engine's mutable state.
"""

from typing import Any, Dict, Optional

from scoring.format_config import FormatConfig
from scoring.models import Innings, Match
from scoring.stats import StatsAggregator


def _innings_view(match: Match, innings: Innings, fmt: FormatConfig) -> Dict[str, Any]:
    bpo = fmt.balls_per_over
    over = innings.open_over(bpo)
    runs_needed: Optional[int] = None
    balls_remaining = max(0, fmt.balls_per_innings - innings.legal_balls)
    if innings.target is not None:
        runs_needed = max(0, innings.target - innings.total_runs)

    return {
        "number": innings.number,
        "batting_team": innings.batting_team_id,
        "bowling_team": innings.bowling_team_id,
        "total_runs": innings.total_runs,
        "wickets": innings.wickets,
        "overs": innings.overs_text(bpo),
        "legal_balls": innings.legal_balls,
        "balls_remaining": balls_remaining,
        "target": innings.target,
        "runs_needed": runs_needed,
        "completed": innings.completed,
        "end_reason": innings.end_reason,
        "striker": innings.striker_id,
        "non_striker": innings.non_striker_id,
        "awaiting_batsman": innings.awaiting_batsman,
        "batting_order": list(innings.batting_order),
        "extras": innings.extras_breakdown(),
        "current_over": {
            "number": over.number,
            "bowler": over.bowler_id,
            "balls": [b.to_dict() for b in over.balls],
        } if over is not None else None,
        "previous_over_bowler": innings.previous_over_bowler(bpo),
    }


def build_snapshot(match: Match, stats: StatsAggregator, fmt: FormatConfig) -> Dict[str, Any]:
    return {
        "match_id": match.match_id,
        "format": fmt.name,
        "overs": fmt.overs,
        "state": match.state.value,
        "status": match.status.value,
        "abandon_reason": match.abandon_reason,
        "current_innings": match.current_innings,
        "pending_penalty_runs": match.pending_penalty_runs,
        "innings": [_innings_view(match, inn, fmt) for inn in match.innings],
        "stats": stats.to_dict(),
    }

"""
Reporting on top of the scoring engine: scorecard tables, CSV export and
the result line.  Nothing here feeds back into scoring.
"""

import logging
import os
from typing import Dict, List

import pandas as pd
from tabulate import tabulate

from scoring.format_config import FormatConfig
from scoring.lifecycle import all_out_at
from scoring.models import LifecycleState, Match
from scoring.stats import BattingStats, StatsAggregator

logger = logging.getLogger(__name__)

BATTING_COLUMNS = ["Player Name", "Status", "Runs", "Balls", "Fours", "Sixes", "Dots", "Strike Rate"]
BOWLING_COLUMNS = ["Bowler Name", "Overs", "Maidens", "Runs", "Wickets", "Economy", "Wides", "No Balls", "Dots"]
PARTNERSHIP_COLUMNS = ["Wicket", "Batter 1", "Batter 2", "Runs", "Balls"]


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def dismissal_text(match: Match, bat: BattingStats) -> str:
    if not bat.is_out:
        return "not out"
    name = match.setup.player_name
    bowler = name(bat.dismissed_by) if bat.dismissed_by else ""
    fielder = name(bat.fielder_id) if bat.fielder_id else ""
    kind = bat.dismissal_kind
    if kind == "bowled":
        return f"b {bowler}"
    if kind == "caught":
        if bat.fielder_id and bat.fielder_id == bat.dismissed_by:
            return f"c & b {bowler}"
        return f"c {fielder or 'sub'} b {bowler}"
    if kind == "lbw":
        return f"lbw b {bowler}"
    if kind == "stumped":
        return f"st {fielder} b {bowler}"
    if kind == "hit_wicket":
        return f"hit wicket b {bowler}"
    if kind == "run_out":
        return f"run out ({fielder})" if fielder else "run out"
    return kind.replace("_", " ")


def batting_frame(match: Match, stats: StatsAggregator, innings_number: int) -> pd.DataFrame:
    inn = stats.innings.get(innings_number)
    rows = []
    if inn is not None:
        for bat in inn.batting.values():
            rows.append({
                "Player Name": match.setup.player_name(bat.player_id),
                "Status": dismissal_text(match, bat),
                "Runs": bat.runs,
                "Balls": bat.balls_faced,
                "Fours": bat.fours,
                "Sixes": bat.sixes,
                "Dots": bat.dots,
                "Strike Rate": bat.strike_rate,
            })
    return pd.DataFrame(rows, columns=BATTING_COLUMNS)


def bowling_frame(match: Match, stats: StatsAggregator, innings_number: int) -> pd.DataFrame:
    inn = stats.innings.get(innings_number)
    rows = []
    if inn is not None:
        for bowl in inn.bowling.values():
            rows.append({
                "Bowler Name": match.setup.player_name(bowl.player_id),
                "Overs": bowl.overs,
                "Maidens": bowl.maidens,
                "Runs": bowl.runs_conceded,
                "Wickets": bowl.wickets,
                "Economy": bowl.economy,
                "Wides": bowl.wides,
                "No Balls": bowl.no_balls,
                "Dots": bowl.dots,
            })
    return pd.DataFrame(rows, columns=BOWLING_COLUMNS)


def partnership_frame(match: Match, stats: StatsAggregator, innings_number: int) -> pd.DataFrame:
    inn = stats.innings.get(innings_number)
    rows = []
    if inn is not None:
        for p in inn.partnerships:
            rows.append({
                "Wicket": p.wicket,
                "Batter 1": match.setup.player_name(p.batter_one),
                "Batter 2": match.setup.player_name(p.batter_two),
                "Runs": p.runs,
                "Balls": p.balls,
            })
    return pd.DataFrame(rows, columns=PARTNERSHIP_COLUMNS)


def match_result(match: Match, fmt: FormatConfig) -> str:
    """Result line: margin in runs, or in wickets with balls to spare."""
    if match.state == LifecycleState.ABANDONED:
        return "No result"
    if match.state != LifecycleState.MATCH_COMPLETE:
        return "Match in progress"

    first, second = match.innings[0], match.innings[1]
    if second.total_runs > first.total_runs:
        team = match.setup.team(second.batting_team_id).name
        wickets_left = all_out_at(match, fmt) - second.wickets
        balls_left = fmt.balls_per_innings - second.legal_balls
        return f"{team} won by {_plural(wickets_left, 'wicket')} ({_plural(balls_left, 'ball')} left)"
    if first.total_runs > second.total_runs:
        team = match.setup.team(first.batting_team_id).name
        return f"{team} won by {_plural(first.total_runs - second.total_runs, 'run')}"
    return "Match tied"


def render_scorecard(match: Match, stats: StatsAggregator, fmt: FormatConfig) -> str:
    """Plain-text scorecard of every innings played so far."""
    sections: List[str] = []
    for innings in match.innings:
        team = match.setup.team(innings.batting_team_id).name
        header = (f"{team} {innings.total_runs}/{innings.wickets} "
                  f"({innings.overs_text(fmt.balls_per_over)} overs)")
        extras = innings.extras_breakdown()
        extras_line = (f"Extras: {extras['total']} (w {extras['wides']}, nb {extras['no_balls']}, "
                       f"b {extras['byes']}, lb {extras['leg_byes']}, pen {extras['penalty']})")
        batting = batting_frame(match, stats, innings.number)
        bowling = bowling_frame(match, stats, innings.number)
        sections.append("\n".join([
            header,
            tabulate(batting.values.tolist(), headers=BATTING_COLUMNS, tablefmt="grid"),
            extras_line,
            tabulate(bowling.values.tolist(), headers=BOWLING_COLUMNS, tablefmt="grid"),
        ]))
    sections.append(match_result(match, fmt))
    return "\n\n".join(sections)


def export_csv(match: Match, stats: StatsAggregator, out_dir: str) -> Dict[str, str]:
    """
    Write batting and bowling CSVs per innings into *out_dir*.

    Returns the written paths keyed like ``"batting_1"``.
    """
    os.makedirs(out_dir, exist_ok=True)
    written: Dict[str, str] = {}
    for innings in match.innings:
        for kind, builder in (("batting", batting_frame), ("bowling", bowling_frame)):
            df = builder(match, stats, innings.number)
            path = os.path.join(out_dir, f"{match.match_id}_{kind}_{innings.number}.csv")
            df.to_csv(path, index=False)
            written[f"{kind}_{innings.number}"] = path
    logger.info("Match %s: scorecard exported to %s", match.match_id, out_dir)
    return written


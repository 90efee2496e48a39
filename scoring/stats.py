"""
scoring/stats.py
================

Statistics aggregator: batting, bowling, partnership and fall-of-wicket
figures per innings, derived only from the Ball stream.

The aggregator is never the system of record.  ``update`` folds one ball in
incrementally and ``StatsAggregator.replay`` rebuilds the same figures from
scratch; the two must always agree, which is what the undo self-check and
database-backed restarts rely on.

ICC accounting used here
------------------------
* Balls faced:   every delivery except a wide (no-balls count).
* Fours/sixes:   runs off the bat of 4 / 6.
* Runs conceded: runs off the bat + wides + no-balls; byes, leg-byes and
                 penalty runs are not charged to the bowler.
* Maiden:        a completed over with nothing conceded.
* Economy:       runs conceded per over, overs taken as legal balls / 6.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from scoring.models import Ball

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Per-player figures
# -----------------------------------------------------------------------------

@dataclass
class BattingStats:
    player_id: str
    runs: int = 0
    balls_faced: int = 0
    fours: int = 0
    sixes: int = 0
    dots: int = 0
    is_out: bool = False
    dismissal_kind: Optional[str] = None
    dismissed_by: Optional[str] = None
    fielder_id: Optional[str] = None

    @property
    def strike_rate(self) -> float:
        if self.balls_faced == 0:
            return 0.0
        return round(self.runs * 100 / self.balls_faced, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "runs": self.runs,
            "balls_faced": self.balls_faced,
            "fours": self.fours,
            "sixes": self.sixes,
            "dots": self.dots,
            "strike_rate": self.strike_rate,
            "is_out": self.is_out,
            "dismissal_kind": self.dismissal_kind,
            "dismissed_by": self.dismissed_by,
            "fielder_id": self.fielder_id,
        }


@dataclass
class BowlingStats:
    player_id: str
    balls_per_over: int = 6
    legal_balls: int = 0
    runs_conceded: int = 0
    wickets: int = 0
    maidens: int = 0
    wides: int = 0
    no_balls: int = 0
    dots: int = 0
    fours: int = 0
    sixes: int = 0

    @property
    def overs_completed(self) -> int:
        return self.legal_balls // self.balls_per_over

    @property
    def overs(self) -> str:
        return f"{self.legal_balls // self.balls_per_over}.{self.legal_balls % self.balls_per_over}"

    @property
    def economy(self) -> float:
        if self.legal_balls == 0:
            return 0.0
        return round(self.runs_conceded / (self.legal_balls / self.balls_per_over), 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "overs": self.overs,
            "overs_completed": self.overs_completed,
            "legal_balls": self.legal_balls,
            "maidens": self.maidens,
            "runs_conceded": self.runs_conceded,
            "wickets": self.wickets,
            "economy": self.economy,
            "wides": self.wides,
            "no_balls": self.no_balls,
            "dots": self.dots,
            "fours": self.fours,
            "sixes": self.sixes,
        }


@dataclass
class Partnership:
    """Runs and legal balls since the last wicket; extras included in runs."""
    wicket: int                          # partnership for the nth wicket
    batter_one: str
    batter_two: str
    runs: int = 0
    balls: int = 0
    contributions: Dict[str, int] = field(default_factory=dict)
    ended: bool = False

    def involves(self, striker: str, non_striker: str) -> bool:
        return {striker, non_striker} == {self.batter_one, self.batter_two}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wicket": self.wicket,
            "batters": [self.batter_one, self.batter_two],
            "runs": self.runs,
            "balls": self.balls,
            "contributions": dict(self.contributions),
            "ended": self.ended,
        }


@dataclass
class FallOfWicket:
    wicket: int
    player_id: str
    score: int
    overs: str

    def to_dict(self) -> Dict[str, Any]:
        return {"wicket": self.wicket, "player_id": self.player_id,
                "score": self.score, "overs": self.overs}


# -----------------------------------------------------------------------------
# Per-innings container
# -----------------------------------------------------------------------------

@dataclass
class InningsStats:
    number: int
    batting: Dict[str, BattingStats] = field(default_factory=dict)
    bowling: Dict[str, BowlingStats] = field(default_factory=dict)
    partnerships: List[Partnership] = field(default_factory=list)
    fall_of_wickets: List[FallOfWicket] = field(default_factory=list)
    runs: int = 0
    legal_balls: int = 0
    over_number: Optional[int] = None
    over_conceded: int = 0

    @property
    def current_partnership(self) -> Optional[Partnership]:
        if self.partnerships and not self.partnerships[-1].ended:
            return self.partnerships[-1]
        return None

    def to_dict(self) -> Dict[str, Any]:
        current = self.current_partnership
        return {
            "number": self.number,
            "batting": [b.to_dict() for b in self.batting.values()],
            "bowling": [b.to_dict() for b in self.bowling.values()],
            "partnership": current.to_dict() if current else None,
            "partnerships": [p.to_dict() for p in self.partnerships],
            "fall_of_wickets": [f.to_dict() for f in self.fall_of_wickets],
        }


# -----------------------------------------------------------------------------
# Aggregator
# -----------------------------------------------------------------------------

@dataclass
class StatsAggregator:
    balls_per_over: int = 6
    innings: Dict[int, InningsStats] = field(default_factory=dict)

    @classmethod
    def replay(cls, balls: Iterable[Ball], balls_per_over: int = 6) -> "StatsAggregator":
        """Rebuild every figure from an ordered Ball stream."""
        stats = cls(balls_per_over=balls_per_over)
        for ball in balls:
            stats.update(ball)
        return stats

    def for_innings(self, number: int) -> InningsStats:
        if number not in self.innings:
            self.innings[number] = InningsStats(number=number)
        return self.innings[number]

    def update(self, ball: Ball) -> "StatsAggregator":
        inn = self.for_innings(ball.innings_number)
        self._update_batting(inn, ball)
        bowler = self._update_bowling(inn, ball)
        partnership = self._update_partnership(inn, ball)

        inn.runs += ball.total_runs
        if ball.is_legal:
            inn.legal_balls += 1

        if ball.dismissal is not None:
            d = ball.dismissal
            out = inn.batting.setdefault(d.player_out_id, BattingStats(d.player_out_id))
            out.is_out = True
            out.dismissal_kind = d.kind.value
            out.dismissed_by = d.bowler_id
            out.fielder_id = d.fielder_id
            if d.bowler_id is not None:
                bowler.wickets += 1
            inn.fall_of_wickets.append(FallOfWicket(
                wicket=len(inn.fall_of_wickets) + 1,
                player_id=d.player_out_id,
                score=inn.runs,
                overs=f"{inn.legal_balls // self.balls_per_over}.{inn.legal_balls % self.balls_per_over}",
            ))
            partnership.ended = True
        return self

    def _update_batting(self, inn: InningsStats, ball: Ball) -> None:
        for pid in (ball.striker_id, ball.non_striker_id):
            if pid not in inn.batting:
                inn.batting[pid] = BattingStats(pid)
        bat = inn.batting[ball.striker_id]
        bat.runs += ball.runs_off_bat
        if not ball.is_wide:
            bat.balls_faced += 1
            if ball.runs_off_bat == 0:
                bat.dots += 1
        if ball.runs_off_bat == 4:
            bat.fours += 1
        elif ball.runs_off_bat == 6:
            bat.sixes += 1

    def _update_bowling(self, inn: InningsStats, ball: Ball) -> BowlingStats:
        bowl = inn.bowling.get(ball.bowler_id)
        if bowl is None:
            bowl = inn.bowling[ball.bowler_id] = BowlingStats(ball.bowler_id, self.balls_per_over)
        bowl.runs_conceded += ball.runs_conceded
        if ball.is_wide:
            bowl.wides += 1
        if ball.is_no_ball:
            bowl.no_balls += 1
        if ball.runs_off_bat == 4:
            bowl.fours += 1
        elif ball.runs_off_bat == 6:
            bowl.sixes += 1

        if inn.over_number != ball.over_number:
            inn.over_number = ball.over_number
            inn.over_conceded = 0
        inn.over_conceded += ball.runs_conceded

        if ball.is_legal:
            bowl.legal_balls += 1
            if ball.runs_conceded == 0:
                bowl.dots += 1
            if ball.ball_number == self.balls_per_over and inn.over_conceded == 0:
                bowl.maidens += 1
                logger.debug("Maiden over %d for %s", ball.over_number + 1, ball.bowler_id)
        return bowl

    def _update_partnership(self, inn: InningsStats, ball: Ball) -> Partnership:
        current = inn.current_partnership
        if current is None or not current.involves(ball.striker_id, ball.non_striker_id):
            if current is not None:
                current.ended = True
            current = Partnership(
                wicket=len(inn.partnerships) + 1,
                batter_one=ball.striker_id,
                batter_two=ball.non_striker_id,
                contributions={ball.striker_id: 0, ball.non_striker_id: 0},
            )
            inn.partnerships.append(current)
        current.runs += ball.total_runs
        if ball.is_legal:
            current.balls += 1
        current.contributions[ball.striker_id] += ball.runs_off_bat
        return current

    def to_dict(self) -> Dict[int, Dict[str, Any]]:
        return {n: s.to_dict() for n, s in self.innings.items()}

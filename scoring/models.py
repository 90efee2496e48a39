"""
models.py

Data model of a limited-overs match as the scorer sees it: team sheets and
match setup (created externally, immutable), the Ball as the atomic recorded
event, and the Over / Innings / Match containers the Ball Processor mutates.

Statistics are deliberately absent here: they are derived from the Ball
stream by scoring.stats and never stored on the model.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


# -----------------------------------------------------------------------------
# 0) Enumerations
# -----------------------------------------------------------------------------

class TossDecision(str, Enum):
    BAT = "bat"
    BOWL = "bowl"


class MatchStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class LifecycleState(str, Enum):
    SETUP = "setup"
    INNINGS_ONE_IN_PROGRESS = "innings_one_in_progress"
    INNINGS_ONE_COMPLETE = "innings_one_complete"
    INNINGS_TWO_IN_PROGRESS = "innings_two_in_progress"
    INNINGS_TWO_COMPLETE = "innings_two_complete"
    MATCH_COMPLETE = "match_complete"
    ABANDONED = "abandoned"


class DismissalKind(str, Enum):
    BOWLED = "bowled"
    CAUGHT = "caught"
    LBW = "lbw"
    RUN_OUT = "run_out"
    STUMPED = "stumped"
    HIT_WICKET = "hit_wicket"
    HANDLED_BALL = "handled_ball"
    OBSTRUCTING_FIELD = "obstructing_field"
    HIT_BALL_TWICE = "hit_ball_twice"
    TIMED_OUT = "timed_out"


class DeliveryContext(str, Enum):
    """What kind of delivery a dismissal happened on."""
    LEGAL = "legal"
    WIDE = "wide"
    NO_BALL = "no_ball"


# -----------------------------------------------------------------------------
# 1) Teams and setup
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Player:
    player_id: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"player_id": self.player_id, "name": self.name}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Player":
        return Player(player_id=str(data["player_id"]), name=data.get("name") or str(data["player_id"]))


@dataclass(frozen=True)
class TeamSheet:
    """A side as named for this match, batting order not implied."""
    team_id: str
    name: str
    players: Tuple[Player, ...]

    @property
    def player_ids(self) -> List[str]:
        return [p.player_id for p in self.players]

    def has_player(self, player_id: Optional[str]) -> bool:
        return player_id is not None and any(p.player_id == player_id for p in self.players)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "team_id": self.team_id,
            "name": self.name,
            "players": [p.to_dict() for p in self.players],
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "TeamSheet":
        return TeamSheet(
            team_id=str(data["team_id"]),
            name=data.get("name") or str(data["team_id"]),
            players=tuple(Player.from_dict(p) for p in data["players"]),
        )


@dataclass(frozen=True)
class MatchSetup:
    """Everything fixed before the first ball: sides, overs and toss."""
    match_id: str
    home: TeamSheet
    away: TeamSheet
    overs: int
    toss_winner: str
    toss_decision: TossDecision
    match_format: Optional[str] = None   # None: the configured default

    def __post_init__(self):
        if not isinstance(self.toss_decision, TossDecision):
            object.__setattr__(self, "toss_decision", TossDecision(str(self.toss_decision).lower()))

    @property
    def batting_first(self) -> TeamSheet:
        toss_winner = self.home if self.toss_winner == self.home.team_id else self.away
        toss_loser = self.away if toss_winner is self.home else self.home
        if self.toss_decision == TossDecision.BAT:
            return toss_winner
        return toss_loser

    @property
    def bowling_first(self) -> TeamSheet:
        return self.away if self.batting_first is self.home else self.home

    def team(self, team_id: str) -> TeamSheet:
        if team_id == self.home.team_id:
            return self.home
        if team_id == self.away.team_id:
            return self.away
        raise KeyError(team_id)

    def player(self, player_id: Optional[str]) -> Optional[Player]:
        for team in (self.home, self.away):
            for p in team.players:
                if p.player_id == player_id:
                    return p
        return None

    def player_name(self, player_id: Optional[str]) -> str:
        p = self.player(player_id)
        return p.name if p else str(player_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "match_id": self.match_id,
            "home": self.home.to_dict(),
            "away": self.away.to_dict(),
            "overs": self.overs,
            "toss_winner": self.toss_winner,
            "toss_decision": self.toss_decision.value,
            "match_format": self.match_format,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "MatchSetup":
        return MatchSetup(
            match_id=str(data["match_id"]),
            home=TeamSheet.from_dict(data["home"]),
            away=TeamSheet.from_dict(data["away"]),
            overs=int(data["overs"]),
            toss_winner=str(data["toss_winner"]),
            toss_decision=TossDecision(str(data["toss_decision"]).lower()),
            match_format=data.get("match_format"),
        )


# -----------------------------------------------------------------------------
# 2) Intents (what the scorer proposes)
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class BallIntent:
    """
    A proposed delivery as delivered by the intent layer.

    ``runs`` are runs off the bat.  On a wide any runs taken are entered as
    ``runs`` or ``byes`` and are folded into the wide count by the validator.
    ``striker_id``/``non_striker_id`` may be omitted once the openers are
    known; they are required for the first ball of an innings.
    """
    bowler_id: str
    striker_id: Optional[str] = None
    non_striker_id: Optional[str] = None
    runs: int = 0
    wide: bool = False
    no_ball: bool = False
    byes: int = 0
    leg_byes: int = 0
    penalty_runs: int = 0
    wicket_kind: Optional[str] = None
    player_out_id: Optional[str] = None
    fielder_id: Optional[str] = None
    batsmen_crossed: bool = False
    short_run: bool = False
    deliberate_short_run: bool = False
    dead_ball: bool = False

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "BallIntent":
        unknown = sorted(set(data) - set(BallIntent.__dataclass_fields__))
        if unknown:
            raise TypeError(f"unknown ball intent fields: {', '.join(unknown)}")
        return BallIntent(**data)


# -----------------------------------------------------------------------------
# 3) Recorded events
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Dismissal:
    kind: DismissalKind
    player_out_id: str
    fielder_id: Optional[str] = None
    bowler_id: Optional[str] = None     # set only when credited to the bowler

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "player_out_id": self.player_out_id,
            "fielder_id": self.fielder_id,
            "bowler_id": self.bowler_id,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Dismissal":
        return Dismissal(
            kind=DismissalKind(data["kind"]),
            player_out_id=data["player_out_id"],
            fielder_id=data.get("fielder_id"),
            bowler_id=data.get("bowler_id"),
        )


@dataclass(frozen=True)
class Ball:
    """
    One recorded delivery, already normalised by the Rule Validator.

    ``wides`` and ``no_balls`` hold runs, not counts: a wide that runs away
    for four is recorded as ``wides=5``.  ``crossings`` is how many times the
    batsmen crossed and alone decides strike rotation for this delivery.
    """
    innings_number: int
    over_number: int
    ball_number: int
    striker_id: str
    non_striker_id: str
    bowler_id: str
    runs_off_bat: int = 0
    wides: int = 0
    no_balls: int = 0
    byes: int = 0
    leg_byes: int = 0
    penalty_runs: int = 0
    fielding_penalty_runs: int = 0
    dismissal: Optional[Dismissal] = None
    short_run: bool = False
    short_runs: int = 0
    deliberate_short_run: bool = False
    dead_ball: bool = False
    batsmen_crossed: bool = False
    crossings: int = 0

    @property
    def is_legal(self) -> bool:
        return self.wides == 0 and self.no_balls == 0

    @property
    def is_wide(self) -> bool:
        return self.wides > 0

    @property
    def is_no_ball(self) -> bool:
        return self.no_balls > 0

    @property
    def is_wicket(self) -> bool:
        return self.dismissal is not None

    @property
    def context(self) -> DeliveryContext:
        if self.is_no_ball:
            return DeliveryContext.NO_BALL
        if self.is_wide:
            return DeliveryContext.WIDE
        return DeliveryContext.LEGAL

    @property
    def extras(self) -> int:
        return self.wides + self.no_balls + self.byes + self.leg_byes

    @property
    def total_runs(self) -> int:
        """Runs added to the batting side's total by this delivery."""
        return self.runs_off_bat + self.extras + self.penalty_runs

    @property
    def runs_conceded(self) -> int:
        """Runs charged to the bowler: byes, leg-byes and penalties excluded."""
        return self.runs_off_bat + self.wides + self.no_balls

    @property
    def label(self) -> str:
        return f"{self.over_number}.{self.ball_number}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["dismissal"] = self.dismissal.to_dict() if self.dismissal else None
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Ball":
        fields = {k: v for k, v in data.items() if k in Ball.__dataclass_fields__}
        if fields.get("dismissal"):
            fields["dismissal"] = Dismissal.from_dict(fields["dismissal"])
        return Ball(**fields)


# -----------------------------------------------------------------------------
# 4) Containers mutated by the Ball Processor
# -----------------------------------------------------------------------------

@dataclass
class Over:
    number: int
    bowler_id: str
    balls: List[Ball] = field(default_factory=list)

    @property
    def legal_balls(self) -> int:
        return sum(1 for b in self.balls if b.is_legal)

    @property
    def runs(self) -> int:
        return sum(b.total_runs for b in self.balls)

    @property
    def runs_conceded(self) -> int:
        return sum(b.runs_conceded for b in self.balls)

    def is_complete(self, balls_per_over: int = 6) -> bool:
        return self.legal_balls >= balls_per_over

    def is_maiden(self, balls_per_over: int = 6) -> bool:
        return self.is_complete(balls_per_over) and self.runs_conceded == 0


@dataclass
class Innings:
    number: int
    batting_team_id: str
    bowling_team_id: str
    overs: List[Over] = field(default_factory=list)
    total_runs: int = 0
    wickets: int = 0
    legal_balls: int = 0
    completed: bool = False
    striker_id: Optional[str] = None
    non_striker_id: Optional[str] = None
    batting_order: List[str] = field(default_factory=list)
    dismissed: List[str] = field(default_factory=list)
    awarded_penalty_runs: int = 0
    target: Optional[int] = None
    end_reason: Optional[str] = None

    def balls(self) -> Iterator[Ball]:
        for over in self.overs:
            yield from over.balls

    @property
    def ball_count(self) -> int:
        return sum(len(o.balls) for o in self.overs)

    def open_over(self, balls_per_over: int = 6) -> Optional[Over]:
        """The over in progress, or None between overs."""
        if self.overs and not self.overs[-1].is_complete(balls_per_over):
            return self.overs[-1]
        return None

    def previous_over_bowler(self, balls_per_over: int = 6) -> Optional[str]:
        """Bowler of the last completed over, the one barred from the next."""
        for over in reversed(self.overs):
            if over.is_complete(balls_per_over):
                return over.bowler_id
        return None

    @property
    def at_crease(self) -> List[str]:
        return [p for p in (self.striker_id, self.non_striker_id) if p is not None]

    @property
    def openers_set(self) -> bool:
        return bool(self.batting_order)

    @property
    def awaiting_batsman(self) -> bool:
        """A wicket has fallen and the incoming batsman is not yet named."""
        return (not self.completed and self.openers_set
                and (self.striker_id is None or self.non_striker_id is None))

    def overs_text(self, balls_per_over: int = 6) -> str:
        return f"{self.legal_balls // balls_per_over}.{self.legal_balls % balls_per_over}"

    def extras_breakdown(self) -> Dict[str, int]:
        totals = {"wides": 0, "no_balls": 0, "byes": 0, "leg_byes": 0, "penalty": self.awarded_penalty_runs}
        for b in self.balls():
            totals["wides"] += b.wides
            totals["no_balls"] += b.no_balls
            totals["byes"] += b.byes
            totals["leg_byes"] += b.leg_byes
            totals["penalty"] += b.penalty_runs
        totals["total"] = sum(totals.values())
        return totals


@dataclass
class Match:
    setup: MatchSetup
    innings: List[Innings] = field(default_factory=list)
    status: MatchStatus = MatchStatus.NOT_STARTED
    state: LifecycleState = LifecycleState.SETUP
    abandon_reason: Optional[str] = None
    pending_penalty_runs: int = 0        # fielding-side award waiting for innings two

    @staticmethod
    def create(setup: MatchSetup) -> "Match":
        match = Match(setup=setup)
        match.innings.append(Innings(
            number=1,
            batting_team_id=setup.batting_first.team_id,
            bowling_team_id=setup.bowling_first.team_id,
        ))
        return match

    @property
    def match_id(self) -> str:
        return self.setup.match_id

    @property
    def current(self) -> Innings:
        return self.innings[-1]

    @property
    def current_innings(self) -> int:
        return self.current.number

    @property
    def batting_team(self) -> TeamSheet:
        return self.setup.team(self.current.batting_team_id)

    @property
    def bowling_team(self) -> TeamSheet:
        return self.setup.team(self.current.bowling_team_id)

    @property
    def is_terminal(self) -> bool:
        return self.state in (LifecycleState.MATCH_COMPLETE, LifecycleState.ABANDONED)

"""
scoring/rules.py
================

Centralises every ICC playing-condition check applied to a proposed delivery.
The validator is pure: it reads the current Match and returns either an
``Accepted`` normalised Ball or a ``Rejected`` reason, and never mutates
state or raises for an expected rule violation.

Rules enforced
--------------
1. Match/innings open:  no deliveries once the innings or match is over, or
                        once the batting side is all out.
2. Incoming batsman:    after a wicket the replacement must be named before
                        the next ball.
3. References:          bowler and fielder from the bowling side, batsmen
                        from the batting side (InvalidReference otherwise).
4. The over (Law 17):   one bowler per over; no bowler may bowl two
                        consecutive overs (17.6); per-bowler quota of the
                        format.
5. Scoring (Law 18):    0-6 runs off the bat, byes and leg-byes exclusive.
6. Extras (Laws 21/22): no-ball takes precedence over wide; a wide yields
                        only wides; a no-ball adds its mandatory run.
7. Short runs (18.3-5): unintentional: one run deducted; deliberate: all
                        run runs disallowed, penalty to the fielding side.
8. Dead ball (Law 20):  nullifies runs, wicket and short-run calls.
9. Dismissals:          DISMISSAL_POLICY table, kind x delivery context.

Usage
-----
    validator = RuleValidator(fmt)
    outcome = validator.validate(match, intent)
    if outcome.ok:
        apply_ball(match, outcome.value, fmt)
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, FrozenSet, Iterable, Optional, Union

from scoring.errors import Accepted, InvalidReference, Rejected, RuleViolation, ScoringError
from scoring.format_config import FormatConfig
from scoring.lifecycle import all_out_at
from scoring.models import (
    Ball,
    BallIntent,
    DeliveryContext,
    Dismissal,
    DismissalKind,
    Innings,
    Match,
)

logger = logging.getLogger(__name__)

MAX_RUNS_PER_DELIVERY = 6


# ---------------------------------------------------------------------------
# Dismissal policy table
# ---------------------------------------------------------------------------

LEGAL = DeliveryContext.LEGAL
WIDE = DeliveryContext.WIDE
NO_BALL = DeliveryContext.NO_BALL


@dataclass(frozen=True)
class DismissalRule:
    """
    How one mode of dismissal interacts with the delivery.

    contexts           : delivery contexts on which the dismissal is possible
    striker_only       : only the striker can be out this way
    runs_allowed       : runs completed before the dismissal still count
    credited_to_bowler : counts in the bowler's wickets column
    """
    contexts: FrozenSet[DeliveryContext]
    striker_only: bool
    runs_allowed: bool
    credited_to_bowler: bool


DISMISSAL_POLICY: Dict[DismissalKind, DismissalRule] = {
    DismissalKind.BOWLED:            DismissalRule(frozenset({LEGAL}), True, False, True),
    DismissalKind.CAUGHT:            DismissalRule(frozenset({LEGAL}), True, False, True),
    DismissalKind.LBW:               DismissalRule(frozenset({LEGAL}), True, False, True),
    DismissalKind.STUMPED:           DismissalRule(frozenset({LEGAL, WIDE}), True, False, True),
    DismissalKind.HIT_WICKET:        DismissalRule(frozenset({LEGAL, WIDE}), True, False, True),
    DismissalKind.RUN_OUT:           DismissalRule(frozenset({LEGAL, WIDE, NO_BALL}), False, True, False),
    DismissalKind.OBSTRUCTING_FIELD: DismissalRule(frozenset({LEGAL, WIDE, NO_BALL}), False, True, False),
    DismissalKind.HANDLED_BALL:      DismissalRule(frozenset({LEGAL, WIDE, NO_BALL}), False, True, False),
    DismissalKind.HIT_BALL_TWICE:    DismissalRule(frozenset({LEGAL, NO_BALL}), True, False, False),
    # Timed out happens between deliveries, never on one.
    DismissalKind.TIMED_OUT:         DismissalRule(frozenset(), False, False, False),
}


def build_dismissal_policy(overrides: Optional[dict] = None) -> Dict[DismissalKind, DismissalRule]:
    """
    Return DISMISSAL_POLICY with per-kind overrides applied.

    *overrides* comes from the ``scoring.dismissal_policy`` block of
    config.yaml, e.g. ``{"stumped": {"contexts": ["legal"]}}``.
    """
    policy = dict(DISMISSAL_POLICY)
    for kind_name, changes in (overrides or {}).items():
        try:
            kind = DismissalKind(kind_name)
        except ValueError:
            logger.warning("Ignoring dismissal policy override for unknown kind %r", kind_name)
            continue
        changes = dict(changes or {})
        if "contexts" in changes:
            changes["contexts"] = frozenset(DeliveryContext(c) for c in changes["contexts"])
        unknown = set(changes) - set(DismissalRule.__dataclass_fields__)
        for name in unknown:
            logger.warning("Ignoring unknown dismissal policy field %r for %s", name, kind_name)
            changes.pop(name)
        policy[kind] = replace(policy[kind], **changes)
    return policy


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------

Check = Callable[[Match, Innings, BallIntent], Optional[ScoringError]]


class RuleValidator:
    """
    Validates and normalises proposed deliveries for one match format.

    Parameters
    ----------
    format_config : FormatConfig of the match.
    policy        : dismissal policy table, defaults to DISMISSAL_POLICY.
    """

    def __init__(self, format_config: FormatConfig,
                 policy: Optional[Dict[DismissalKind, DismissalRule]] = None):
        self.fmt = format_config
        self.policy = policy or DISMISSAL_POLICY

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def validate(self, match: Match, intent: BallIntent) -> Union[Accepted, Rejected]:
        """Return Accepted(Ball) or Rejected(error) for *intent*."""
        innings = match.current
        checks: Iterable[Check] = (
            self._check_match_open,
            self._check_innings_open,
            self._check_incoming_batsman,
            self._check_references,
            self._check_crease,
            self._check_bowler,
            self._check_runs,
            self._check_extras,
        )
        for check in checks:
            error = check(match, innings, intent)
            if error is not None:
                return self._reject(match, error)

        outcome = self._normalise(match, innings, intent)
        if isinstance(outcome, ScoringError):
            return self._reject(match, outcome)
        return Accepted(outcome)

    def validate_incoming_batsman(self, match: Match, player_id: str) -> Union[Accepted, Rejected]:
        """A replacement (or opener) may only fill a vacant end."""
        innings = match.current
        error: Optional[ScoringError] = (
            self._check_match_open(match, innings, None)
            or self._check_innings_open(match, innings, None)
        )
        if error is None and not match.batting_team.has_player(player_id):
            error = InvalidReference(f"Player {player_id!r} is not in {match.batting_team.name}")
        if error is None and innings.openers_set and not innings.awaiting_batsman:
            error = RuleViolation("Both batsmen are already at the crease", code="no_vacancy")
        if error is None and player_id in innings.batting_order:
            error = RuleViolation(f"{match.setup.player_name(player_id)} has already batted",
                                  code="already_batted")
        if error is not None:
            return self._reject(match, error)
        return Accepted(player_id)

    def validate_switch_strike(self, match: Match) -> Union[Accepted, Rejected]:
        innings = match.current
        error = self._check_match_open(match, innings, None)
        if error is None and (innings.completed or not innings.at_crease):
            error = RuleViolation("No batsmen at the crease to switch", code="no_batsmen")
        if error is not None:
            return self._reject(match, error)
        return Accepted(None)

    def dismissal_allowed(self, kind: DismissalKind, context: DeliveryContext) -> bool:
        rule = self.policy.get(kind)
        return rule is not None and context in rule.contexts

    # ------------------------------------------------------------------ #
    # Checks: each returns an error or None                              #
    # ------------------------------------------------------------------ #

    def _check_match_open(self, match, innings, intent):
        if match.is_terminal:
            return RuleViolation(f"Match is {match.state.value}; no further deliveries",
                                 code="match_not_in_progress")
        return None

    def _check_innings_open(self, match, innings, intent):
        if innings.completed:
            return RuleViolation(f"Innings {innings.number} is complete", code="innings_complete")
        if innings.wickets >= all_out_at(match, self.fmt):
            return RuleViolation("ICC Rule: maximum wickets per innings reached. Team is all out.",
                                 code="all_out")
        return None

    def _check_incoming_batsman(self, match, innings, intent):
        if innings.awaiting_batsman:
            return RuleViolation("A new batsman must be selected before the next ball",
                                 code="batsman_required")
        return None

    def _check_references(self, match, innings, intent):
        batting = match.batting_team
        bowling = match.bowling_team
        if not bowling.has_player(intent.bowler_id):
            return InvalidReference(f"Bowler {intent.bowler_id!r} is not in {bowling.name}")
        for label, pid in (("Striker", intent.striker_id),
                           ("Non-striker", intent.non_striker_id),
                           ("Dismissed player", intent.player_out_id)):
            if pid is not None and not batting.has_player(pid):
                return InvalidReference(f"{label} {pid!r} is not in {batting.name}")
        if intent.fielder_id is not None and not bowling.has_player(intent.fielder_id):
            return InvalidReference(f"Fielder {intent.fielder_id!r} is not in {bowling.name}")
        return None

    def _check_crease(self, match, innings, intent):
        if not innings.openers_set:
            if intent.striker_id is None or intent.non_striker_id is None:
                return RuleViolation("Both opening batsmen must be named on the first ball",
                                     code="openers_required")
            if intent.striker_id == intent.non_striker_id:
                return RuleViolation("Striker and non-striker must be different players",
                                     code="same_batsman")
            return None

        if intent.striker_id is not None and intent.striker_id != innings.striker_id:
            return RuleViolation(
                f"{match.setup.player_name(intent.striker_id)} is not on strike; "
                f"{match.setup.player_name(innings.striker_id)} is",
                code="strike_mismatch",
            )
        if intent.non_striker_id is not None and intent.non_striker_id != innings.non_striker_id:
            return RuleViolation(
                f"{match.setup.player_name(intent.non_striker_id)} is not the non-striker",
                code="strike_mismatch",
            )
        return None

    def _check_bowler(self, match, innings, intent):
        bpo = self.fmt.balls_per_over
        over = innings.open_over(bpo)
        if over is not None:
            if over.bowler_id != intent.bowler_id:
                return RuleViolation(
                    f"Over {over.number + 1} is being bowled by "
                    f"{match.setup.player_name(over.bowler_id)}",
                    code="bowler_change_mid_over",
                )
            return None

        previous = innings.previous_over_bowler(bpo)
        if not self.fmt.allow_consecutive_overs and previous == intent.bowler_id:
            return RuleViolation("ICC Rule 17.6: Same bowler cannot bowl consecutive overs",
                                 code="consecutive_overs")

        bowled = sum(1 for o in innings.overs
                     if o.bowler_id == intent.bowler_id and o.is_complete(bpo))
        if bowled >= self.fmt.max_bowler_overs:
            return RuleViolation(
                f"{match.setup.player_name(intent.bowler_id)} has bowled the maximum "
                f"{self.fmt.max_bowler_overs} overs",
                code="bowler_quota",
            )
        return None

    def _check_runs(self, match, innings, intent):
        for label, value in (("Runs", intent.runs), ("Byes", intent.byes), ("Leg byes", intent.leg_byes)):
            if not 0 <= value <= MAX_RUNS_PER_DELIVERY:
                return RuleViolation(f"ICC Rule 18: {label} must be between 0 and 6.", code="invalid_runs")
        if intent.penalty_runs < 0:
            return RuleViolation("Penalty runs cannot be negative", code="invalid_runs")
        return None

    def _check_extras(self, match, innings, intent):
        if intent.byes and intent.leg_byes:
            return RuleViolation("A delivery cannot produce both byes and leg byes",
                                 code="conflicting_extras")
        if intent.runs and (intent.byes or intent.leg_byes) and not intent.wide:
            return RuleViolation("Runs off the bat and byes cannot be scored off the same delivery",
                                 code="conflicting_extras")
        return None

    # ------------------------------------------------------------------ #
    # Normalisation                                                        #
    # ------------------------------------------------------------------ #

    def _normalise(self, match: Match, innings: Innings, intent: BallIntent):
        """Build the Ball to record, or return the error that prevents it."""
        fmt = self.fmt
        if intent.wide and intent.no_ball:
            logger.debug("Wide and no-ball both called; no-ball takes precedence")
        no_ball = intent.no_ball
        wide = intent.wide and not no_ball

        runs_off_bat, byes, leg_byes = intent.runs, intent.byes, intent.leg_byes
        ran = runs_off_bat + byes + leg_byes
        wides = no_balls = 0
        if wide:
            # Everything taken off a wide is scored as wides.
            wides = fmt.wide_runs + ran
            runs_off_bat = byes = leg_byes = 0
        if no_ball:
            no_balls = fmt.no_ball_runs

        if innings.openers_set:
            striker, non_striker = innings.striker_id, innings.non_striker_id
        else:
            striker, non_striker = intent.striker_id, intent.non_striker_id

        over = innings.open_over(fmt.balls_per_over)
        if over is not None:
            over_number, ball_number = over.number, over.legal_balls + 1
        else:
            over_number, ball_number = len(innings.overs), 1

        ball = Ball(
            innings_number=innings.number,
            over_number=over_number,
            ball_number=ball_number,
            striker_id=striker,
            non_striker_id=non_striker,
            bowler_id=intent.bowler_id,
            runs_off_bat=runs_off_bat,
            wides=wides,
            no_balls=no_balls,
            byes=byes,
            leg_byes=leg_byes,
            penalty_runs=intent.penalty_runs,
        )

        if intent.dead_ball:
            # The sporting outcome is void; the delivery itself still stands.
            return replace(ball, runs_off_bat=0, byes=0, leg_byes=0,
                           wides=fmt.wide_runs if wide else 0, dead_ball=True)

        dismissal = None
        if intent.wicket_kind:
            dismissal = self._dismissal(intent, ball, ran)
            if isinstance(dismissal, ScoringError):
                return dismissal

        ball = replace(ball, dismissal=dismissal,
                       batsmen_crossed=bool(dismissal and intent.batsmen_crossed))

        if intent.deliberate_short_run:
            ball = replace(ball, runs_off_bat=0, byes=0, leg_byes=0,
                           wides=fmt.wide_runs if wide else 0,
                           short_run=True, deliberate_short_run=True,
                           fielding_penalty_runs=fmt.penalty_runs)
            logger.debug("Deliberate short run at %s: runs disallowed, %d penalty runs to fielding side",
                         ball.label, fmt.penalty_runs)
        elif intent.short_run:
            ball = self._deduct_short_run(ball, wide)

        run_runs = ball.runs_off_bat + ball.byes + ball.leg_byes
        if wide:
            run_runs += ball.wides - fmt.wide_runs
        crossings = run_runs + ball.short_runs + (1 if ball.batsmen_crossed else 0)
        return replace(ball, crossings=crossings)

    def _dismissal(self, intent: BallIntent, ball: Ball, ran: int):
        try:
            kind = DismissalKind(str(intent.wicket_kind).lower())
        except ValueError:
            return RuleViolation(f"ICC Rule: Invalid dismissal type '{intent.wicket_kind}'",
                                 code="unknown_dismissal")

        rule = self.policy.get(kind)
        context = ball.context
        if rule is None or not rule.contexts:
            return RuleViolation(f"'{kind.value}' is not a dismissal that can happen on a delivery",
                                 code="dismissal_not_allowed")
        if context not in rule.contexts:
            return RuleViolation(
                f"A batsman cannot be out {kind.value.replace('_', ' ')} "
                f"off a {context.value.replace('_', '-')}",
                code="dismissal_not_allowed",
            )

        player_out = intent.player_out_id or ball.striker_id
        if player_out not in (ball.striker_id, ball.non_striker_id):
            return RuleViolation("Only a batsman at the crease can be dismissed",
                                 code="player_not_at_crease")
        if rule.striker_only and player_out != ball.striker_id:
            return RuleViolation(f"Only the striker can be out {kind.value.replace('_', ' ')}",
                                 code="striker_only_dismissal")
        if not rule.runs_allowed and ran > 0:
            return RuleViolation(f"No runs can be scored when a batsman is out {kind.value.replace('_', ' ')}",
                                 code="runs_on_dismissal")

        return Dismissal(
            kind=kind,
            player_out_id=player_out,
            fielder_id=intent.fielder_id,
            bowler_id=ball.bowler_id if rule.credited_to_bowler else None,
        )

    def _deduct_short_run(self, ball: Ball, wide: bool) -> Ball:
        """Law 18.3: one run short is not scored."""
        if ball.runs_off_bat:
            return replace(ball, runs_off_bat=ball.runs_off_bat - 1, short_run=True, short_runs=1)
        if ball.byes:
            return replace(ball, byes=ball.byes - 1, short_run=True, short_runs=1)
        if ball.leg_byes:
            return replace(ball, leg_byes=ball.leg_byes - 1, short_run=True, short_runs=1)
        if wide and ball.wides > self.fmt.wide_runs:
            return replace(ball, wides=ball.wides - 1, short_run=True, short_runs=1)
        logger.debug("Short run called at %s with no runs to deduct", ball.label)
        return replace(ball, short_run=True)

    def _reject(self, match: Match, error: ScoringError) -> Rejected:
        logger.info("Match %s: rejected (%s) %s", match.match_id, error.code, error.message)
        return Rejected(error)


def validate(match: Match, intent: BallIntent, fmt: FormatConfig) -> Union[Accepted, Rejected]:
    """Functional shortcut for a one-off validation with the default policy."""
    return RuleValidator(fmt).validate(match, intent)

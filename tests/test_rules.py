import pytest

from scoring.errors import InvalidReference, RuleViolation
from scoring.format_config import get_format
from scoring.models import BallIntent, DeliveryContext, DismissalKind, Match
from scoring.rules import DISMISSAL_POLICY, RuleValidator, build_dismissal_policy, validate
from scoring.session import ScoringSession


def _open(session, bowler="A1", **kwargs):
    """First ball of the innings, naming the openers."""
    return session.submit_ball(BallIntent(bowler_id=bowler, striker_id="H1", non_striker_id="H2", **kwargs))


def _ball(session, bowler="A1", **kwargs):
    return session.submit_ball(BallIntent(bowler_id=bowler, **kwargs))


def _code(result):
    assert not result.ok
    return result.error.code


# ------------------------------------------------------------------ #
#  Validator purity
# ------------------------------------------------------------------ #

def test_validate_does_not_mutate_match(setup, fmt):
    match = Match.create(setup)
    outcome = validate(match, BallIntent(bowler_id="A1", striker_id="H1", non_striker_id="H2", runs=4), fmt)
    assert outcome.ok
    assert outcome.value.runs_off_bat == 4
    assert match.current.total_runs == 0
    assert match.current.ball_count == 0
    assert not match.current.openers_set


def test_rejected_ball_leaves_snapshot_unchanged(session):
    assert _open(session).ok
    before = session.get_snapshot()
    result = _ball(session, runs=7)
    assert _code(result) == "invalid_runs"
    assert session.get_snapshot() == before


# ------------------------------------------------------------------ #
#  References and crease
# ------------------------------------------------------------------ #

def test_first_ball_requires_openers(session):
    assert _code(_ball(session)) == "openers_required"


def test_openers_must_differ(session):
    result = session.submit_ball(BallIntent(bowler_id="A1", striker_id="H1", non_striker_id="H1"))
    assert _code(result) == "same_batsman"


def test_bowler_from_batting_side_is_invalid_reference(session):
    result = _open(session, bowler="H5")
    assert isinstance(result.error, InvalidReference)


def test_fielder_must_be_on_fielding_side(session):
    result = _open(session, wicket_kind="caught", fielder_id="H7")
    assert isinstance(result.error, InvalidReference)


def test_striker_mismatch_rejected(session):
    assert _open(session).ok
    result = session.submit_ball(BallIntent(bowler_id="A1", striker_id="H2"))
    assert _code(result) == "strike_mismatch"


# ------------------------------------------------------------------ #
#  The over
# ------------------------------------------------------------------ #

def test_bowler_change_mid_over_rejected(session):
    assert _open(session).ok
    assert _code(_ball(session, bowler="A2")) == "bowler_change_mid_over"


def test_same_bowler_cannot_bowl_consecutive_overs(session):
    assert _open(session).ok
    for _ in range(5):
        assert _ball(session).ok
    result = _ball(session, bowler="A1")
    assert _code(result) == "consecutive_overs"
    assert "17.6" in result.error.message
    assert _ball(session, bowler="A2").ok


def test_bowler_quota_enforced(make_session):
    # Five-over innings: quota of one over per bowler
    session = make_session(overs=5)
    assert _open(session).ok
    for _ in range(5):
        assert _ball(session).ok
    for _ in range(6):
        assert _ball(session, bowler="A2").ok
    assert _code(_ball(session, bowler="A1")) == "bowler_quota"


def test_consecutive_overs_allowed_by_format_override(setup):
    fmt = get_format("T20", overs=2, overrides={"allow_consecutive_overs": True, "max_bowler_overs": 2})
    session = ScoringSession(setup, fmt)
    assert _open(session).ok
    for _ in range(5):
        assert _ball(session).ok
    assert _ball(session, bowler="A1").ok


# ------------------------------------------------------------------ #
#  Runs and extras
# ------------------------------------------------------------------ #

@pytest.mark.parametrize("kwargs", [{"runs": 7}, {"runs": -1}, {"byes": 8}, {"penalty_runs": -5}])
def test_out_of_range_runs_rejected(session, kwargs):
    assert _code(_open(session, **kwargs)) == "invalid_runs"


def test_byes_and_leg_byes_conflict(session):
    assert _code(_open(session, byes=1, leg_byes=1)) == "conflicting_extras"


def test_runs_and_byes_conflict(session):
    assert _code(_open(session, runs=1, byes=1)) == "conflicting_extras"


def test_wide_folds_runs_into_wides(session):
    result = _open(session, wide=True, byes=2)
    assert result.ok
    ball = session.match.current.overs[0].balls[0]
    assert ball.wides == 3
    assert ball.byes == 0
    assert not ball.is_legal


def test_no_ball_takes_precedence_over_wide(session):
    assert _open(session, wide=True, no_ball=True).ok
    ball = session.match.current.overs[0].balls[0]
    assert ball.is_no_ball
    assert not ball.is_wide
    assert ball.no_balls == 1


def test_dead_ball_voids_runs_and_wicket_but_counts(session):
    assert _open(session, runs=4, wicket_kind="bowled", dead_ball=True).ok
    ball = session.match.current.overs[0].balls[0]
    assert ball.dead_ball
    assert ball.total_runs == 0
    assert ball.dismissal is None
    assert ball.is_legal
    assert session.match.current.legal_balls == 1


def test_short_run_deducts_one(session):
    assert _open(session, runs=2, short_run=True).ok
    ball = session.match.current.overs[0].balls[0]
    assert ball.runs_off_bat == 1
    assert ball.short_runs == 1
    assert session.match.current.total_runs == 1
    # Two crossings: strike unchanged
    assert session.match.current.striker_id == "H1"


def test_deliberate_short_run_disallows_runs(session):
    assert _open(session, runs=3, deliberate_short_run=True).ok
    ball = session.match.current.overs[0].balls[0]
    assert ball.runs_off_bat == 0
    assert ball.fielding_penalty_runs == 5
    assert session.match.current.total_runs == 0
    assert session.match.pending_penalty_runs == 5


# ------------------------------------------------------------------ #
#  Dismissals
# ------------------------------------------------------------------ #

@pytest.mark.parametrize("kind, kwargs", [
    ("bowled", {"no_ball": True}),
    ("caught", {"wide": True}),
    ("lbw", {"no_ball": True}),
    ("stumped", {"no_ball": True}),
    ("hit_ball_twice", {"wide": True}),
])
def test_dismissal_not_allowed_on_delivery(session, kind, kwargs):
    assert _code(_open(session, wicket_kind=kind, **kwargs)) == "dismissal_not_allowed"


@pytest.mark.parametrize("kind, kwargs", [
    ("stumped", {"wide": True}),
    ("hit_wicket", {"wide": True}),
    ("run_out", {"no_ball": True}),
    ("run_out", {"wide": True}),
    ("hit_ball_twice", {"no_ball": True}),
])
def test_dismissal_allowed_on_extra(session, kind, kwargs):
    result = _open(session, wicket_kind=kind, **kwargs)
    assert result.ok
    assert session.match.current.wickets == 1


def test_unknown_dismissal_kind(session):
    assert _code(_open(session, wicket_kind="retired_bored")) == "unknown_dismissal"


def test_timed_out_not_accepted_on_a_delivery(session):
    assert _code(_open(session, wicket_kind="timed_out")) == "dismissal_not_allowed"


def test_striker_only_dismissal(session):
    assert _code(_open(session, wicket_kind="bowled", player_out_id="H2")) == "striker_only_dismissal"


def test_runs_not_allowed_with_caught(session):
    assert _code(_open(session, wicket_kind="caught", runs=1)) == "runs_on_dismissal"


def test_player_out_must_be_at_crease(session):
    assert _code(_open(session, wicket_kind="run_out", player_out_id="H5")) == "player_not_at_crease"


def test_run_out_credit_goes_to_nobody(session):
    assert _open(session, wicket_kind="run_out", player_out_id="H2", runs=1, fielder_id="A4").ok
    ball = session.match.current.overs[0].balls[0]
    assert ball.dismissal.bowler_id is None
    assert ball.dismissal.fielder_id == "A4"
    assert ball.runs_off_bat == 1


def test_policy_table_covers_every_kind():
    assert set(DISMISSAL_POLICY) == set(DismissalKind)


def test_policy_override_restricts_stumped(setup, fmt):
    policy = build_dismissal_policy({"stumped": {"contexts": ["legal"]}, "no_such_kind": {}})
    validator = RuleValidator(fmt, policy)
    assert not validator.dismissal_allowed(DismissalKind.STUMPED, DeliveryContext.WIDE)
    assert validator.dismissal_allowed(DismissalKind.STUMPED, DeliveryContext.LEGAL)
    outcome = validator.validate(Match.create(setup), BallIntent(
        bowler_id="A1", striker_id="H1", non_striker_id="H2", wide=True, wicket_kind="stumped"))
    assert not outcome.ok
    assert isinstance(outcome.error, RuleViolation)

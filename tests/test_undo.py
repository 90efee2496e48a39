import random

import pytest

from scoring.errors import NoHistoryError
from scoring.history import BallRecorded, HistoryManager, event_from_dict, replay
from scoring.models import BallIntent, LifecycleState
from scoring.session import ScoringSession

SEEDS = [6101, 6102, 6103, 6104, 6105]

OUTCOMES = [
    {}, {}, {"runs": 1}, {"runs": 1}, {"runs": 2}, {"runs": 4}, {"runs": 6},
    {"wide": True}, {"wide": True, "runs": 1}, {"no_ball": True}, {"no_ball": True, "runs": 4},
    {"byes": 1}, {"leg_byes": 1}, {"runs": 2, "short_run": True},
    {"wicket_kind": "bowled"}, {"wicket_kind": "caught", "fielder_id": "F"},
    {"wicket_kind": "run_out", "runs": 1, "batsmen_crossed": True},
    {"runs": 7},                      # always rejected
]


def _next_intent(session, rng):
    """A plausible next action: select a batsman, or bowl a random ball."""
    match = session.match
    innings = match.current
    batting = match.batting_team.player_ids
    bowling = match.bowling_team.player_ids
    if innings.awaiting_batsman:
        unused = [p for p in batting if p not in innings.batting_order]
        return "select", unused[0]

    over = innings.open_over(session.fmt.balls_per_over)
    if over is not None:
        bowler = over.bowler_id
    else:
        previous = innings.previous_over_bowler(session.fmt.balls_per_over)
        bowled = [o.bowler_id for o in innings.overs]
        bowler = next(p for p in bowling if p != previous and p not in bowled)

    outcome = dict(rng.choice(OUTCOMES))
    if outcome.get("fielder_id") == "F":
        outcome["fielder_id"] = rng.choice(bowling)
    if not innings.openers_set:
        outcome.update(striker_id=batting[0], non_striker_id=batting[1])
    return "ball", BallIntent(bowler_id=bowler, **outcome)


def _act(session, action):
    kind, payload = action
    if kind == "select":
        return session.select_incoming_batsman(payload)
    return session.submit_ball(payload)


# ------------------------------------------------------------------ #
#  Scenarios
# ------------------------------------------------------------------ #

def test_undo_after_over_completion(session):
    assert session.submit_ball(BallIntent(bowler_id="A1", striker_id="H1", non_striker_id="H2")).ok
    for r in (1, 0, 2, 0):
        assert session.submit_ball(BallIntent(bowler_id="A1", runs=r)).ok
    before = session.get_snapshot()

    assert session.submit_ball(BallIntent(bowler_id="A1", runs=1)).ok
    assert session.match.current.overs[0].is_complete()

    result = session.undo()
    assert result.ok
    assert result.value == before
    assert session.get_snapshot() == before
    assert session.match.current.open_over() is session.match.current.overs[0]
    # The same bowler may finish the over after the undo
    assert session.submit_ball(BallIntent(bowler_id="A1", runs=1)).ok


def test_undo_with_empty_history(session):
    result = session.undo()
    assert not result.ok
    assert isinstance(result.error, NoHistoryError)
    with pytest.raises(NoHistoryError):
        result.unwrap()


def test_undo_incoming_batsman(session):
    assert session.submit_ball(BallIntent(bowler_id="A1", striker_id="H1", non_striker_id="H2",
                                          wicket_kind="bowled")).ok
    before = session.get_snapshot()
    assert session.select_incoming_batsman("H3").ok
    assert session.undo().ok
    assert session.get_snapshot() == before
    assert session.match.current.awaiting_batsman


def test_undo_across_innings_boundary(make_session):
    session = make_session(overs=1)
    assert session.submit_ball(BallIntent(bowler_id="A1", striker_id="H1", non_striker_id="H2", runs=4)).ok
    for _ in range(4):
        assert session.submit_ball(BallIntent(bowler_id="A1")).ok
    before = session.get_snapshot()
    assert session.submit_ball(BallIntent(bowler_id="A1")).ok
    assert session.match.current_innings == 2

    assert session.undo().ok
    assert session.match.current_innings == 1
    assert session.match.state == LifecycleState.INNINGS_ONE_IN_PROGRESS
    assert session.get_snapshot() == before


def test_undo_abandonment(session):
    assert session.submit_ball(BallIntent(bowler_id="A1", striker_id="H1", non_striker_id="H2")).ok
    before = session.get_snapshot()
    assert session.abandon("Bad light").ok
    assert session.undo().ok
    assert session.get_snapshot() == before
    assert session.submit_ball(BallIntent(bowler_id="A1")).ok


def test_undo_event_published(session):
    events = []
    session.subscribe(events.append)
    assert session.submit_ball(BallIntent(bowler_id="A1", striker_id="H1", non_striker_id="H2", runs=2)).ok
    assert session.undo().ok
    assert events[-1]["type"] == "ball_undone"
    assert events[-1]["undone"]["type"] == BallRecorded.kind
    assert events[-1]["snapshot"]["innings"][0]["total_runs"] == 0


# ------------------------------------------------------------------ #
#  Properties over seeded random matches
# ------------------------------------------------------------------ #

@pytest.mark.parametrize("seed", SEEDS)
def test_undo_is_inverse_of_every_accepted_action(make_session, seed):
    rng = random.Random(seed)
    session = make_session(overs=3)
    for _ in range(200):
        if session.match.is_terminal:
            break
        action = _next_intent(session, rng)
        before = session.get_snapshot()
        result = _act(session, action)
        if not result.ok:
            assert session.get_snapshot() == before
            continue
        assert session.undo().ok
        assert session.get_snapshot() == before
        assert _act(session, action).ok


@pytest.mark.parametrize("seed", SEEDS)
def test_match_invariants_hold(make_session, seed):
    rng = random.Random(seed)
    session = make_session(overs=3)
    for _ in range(300):
        if session.match.is_terminal:
            break
        _act(session, _next_intent(session, rng))

        for innings in session.match.innings:
            balls = list(innings.balls())
            assert innings.total_runs == sum(b.total_runs for b in balls) + innings.awarded_penalty_runs
            assert all(o.legal_balls <= 6 for o in innings.overs)
            assert innings.legal_balls <= 18
            assert 0 <= innings.wickets <= 10
            assert all(len({b.bowler_id for b in o.balls}) == 1 for o in innings.overs)
            for previous, current in zip(innings.overs, innings.overs[1:]):
                assert previous.bowler_id != current.bowler_id


@pytest.mark.parametrize("seed", SEEDS[:3])
def test_replay_from_event_log_matches_live_session(make_session, seed):
    rng = random.Random(seed)
    live = make_session(overs=3)
    for _ in range(150):
        if live.match.is_terminal:
            break
        _act(live, _next_intent(live, rng))

    restored = ScoringSession.from_events(live.setup, live.events(), format_config=live.fmt)
    assert restored.get_snapshot() == live.get_snapshot()

    history = HistoryManager.from_list(live.setup, live.fmt, live.events())
    match, stats = history.replay()
    assert stats == live.stats
    assert [event_from_dict(e.to_dict()) for e in history.events] == history.events

    match_again, _ = replay(live.setup, history.events, live.fmt)
    assert match_again == match


@pytest.mark.parametrize("seed", SEEDS)
def test_strike_rotation_holds(make_session, seed):
    rng = random.Random(seed)
    session = make_session(overs=3)
    checked = 0
    for _ in range(300):
        if session.match.is_terminal:
            break
        innings = session.match.current
        ends = (innings.striker_id, innings.non_striker_id)
        action = _next_intent(session, rng)
        if not _act(session, action).ok or action[0] != "ball" or None in ends:
            continue
        if session.match.current is not innings or innings.completed:
            continue

        over = innings.overs[-1]
        ball = over.balls[-1]
        if ball.dismissal is not None or ball.wides or ball.short_run or ball.dead_ball:
            continue
        expected = ends
        if (ball.runs_off_bat + ball.byes + ball.leg_byes) % 2 == 1:
            expected = expected[::-1]
        if over.is_complete():
            expected = expected[::-1]
        assert (innings.striker_id, innings.non_striker_id) == expected
        checked += 1
    assert checked > 0

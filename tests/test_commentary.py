from scoring.commentary import GENERIC_LINE, CommentaryEngine
from scoring.models import Ball, BallIntent, Dismissal, DismissalKind
from scoring.stats import BattingStats, StatsAggregator


def _open(session, **kwargs):
    return session.submit_ball(BallIntent(bowler_id="A1", striker_id="H1", non_striker_id="H2", **kwargs))


def _ball_record(**kwargs):
    base = dict(innings_number=1, over_number=0, ball_number=2,
                striker_id="H1", non_striker_id="H2", bowler_id="A1")
    base.update(kwargs)
    return Ball(**base)


def test_line_uses_player_names(session):
    assert _open(session, runs=4).ok
    assert session.last_commentary == "Away_P1 to Home_P1, FOUR!"


def test_ball_applied_event_carries_commentary(session):
    events = []
    session.subscribe(events.append)
    assert _open(session, wide=True).ok
    assert events[0]["type"] == "ball_applied"
    assert events[0]["commentary"] == "Away_P1 to Home_P1, wide."
    assert events[0]["ball"]["wides"] == 1


def test_maiden_and_end_of_over_narratives(session):
    assert _open(session).ok
    for _ in range(5):
        assert session.submit_ball(BallIntent(bowler_id="A1")).ok
    line = session.last_commentary
    assert "Maiden for Away_P1." in line
    assert "End of over 1: 0 runs, Home XI 0/0." in line


def test_fifty_narrative_from_prior_state(session, commentary_pack, fmt):
    assert _open(session).ok
    engine = CommentaryEngine(data_path=commentary_pack, seed=1, format_config=fmt)
    stats = StatsAggregator()
    stats.for_innings(1).batting["H1"] = BattingStats("H1", runs=48)
    line = engine.describe(session.match, stats, _ball_record(runs_off_bat=4))
    assert line == "Away_P1 to Home_P1, FOUR! Fifty for Home_P1."


def test_target_reached_narrative(make_session):
    session = make_session(overs=1)
    assert _open(session, runs=1).ok
    for _ in range(5):
        assert session.submit_ball(BallIntent(bowler_id="A1")).ok
    assert session.submit_ball(BallIntent(bowler_id="H1", striker_id="A1", non_striker_id="A2", runs=6)).ok
    assert session.last_commentary.endswith("Away XI win.")


def test_wicket_falls_back_to_caught_templates(session, commentary_pack, fmt):
    assert _open(session).ok
    engine = CommentaryEngine(data_path=commentary_pack, seed=1, format_config=fmt)
    ball = _ball_record(dismissal=Dismissal(DismissalKind.LBW, "H1", None, "A1"))
    assert engine.describe(session.match, StatsAggregator(), ball).startswith("Away_P1 to Home_P1, OUT!")


def test_missing_template_gives_generic_line(session, commentary_pack, fmt):
    assert _open(session).ok
    engine = CommentaryEngine(data_path=commentary_pack, seed=1, format_config=fmt)
    assert engine.describe(session.match, StatsAggregator(), _ball_record(byes=2)) == GENERIC_LINE


def test_missing_pack_degrades_to_generic_line(session, tmp_path):
    engine = CommentaryEngine(data_path=str(tmp_path / "missing.json"))
    assert engine.events == {}
    assert _open(session).ok
    assert engine.describe(session.match, StatsAggregator(), _ball_record()) == GENERIC_LINE


def test_commentary_failure_never_reaches_scorer(session, commentary_pack, fmt):
    assert _open(session).ok
    engine = CommentaryEngine(data_path=commentary_pack, seed=1, format_config=fmt)
    # A broken stats object makes the narrative check blow up
    assert engine.describe(session.match, object(), _ball_record()) == GENERIC_LINE


def test_bundled_pack_covers_every_event_key():
    engine = CommentaryEngine(seed=3)
    expected = {"dot", "single", "double", "three", "boundary_four", "boundary_six",
                "wide", "noball", "bye", "legbye", "dead_ball"}
    expected |= {f"wicket_{k.value}" for k in DismissalKind if k != DismissalKind.TIMED_OUT}
    assert expected <= set(engine.events)


def test_seeded_engines_agree(session):
    assert _open(session).ok
    ball = _ball_record(runs_off_bat=6)
    lines = [CommentaryEngine(seed=11).describe(session.match, session.stats, ball) for _ in range(2)]
    assert lines[0] == lines[1]

"""
Pytest fixtures for the scoring engine.
Provides team sheets, match setups and ready-to-score sessions.
"""

import json
import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from scoring.commentary import CommentaryEngine
from scoring.format_config import get_format
from scoring.models import MatchSetup, Player, TeamSheet
from scoring.session import ScoringSession


def build_team(team_id: str, prefix: str, name: str, size: int = 11) -> TeamSheet:
    players = tuple(Player(player_id=f"{prefix}{i}", name=f"{name.split()[0]}_P{i}")
                    for i in range(1, size + 1))
    return TeamSheet(team_id=team_id, name=name, players=players)


def build_setup(match_id: str = "m1", overs: int = 2, squad: int = 11, match_format: str = "T20") -> MatchSetup:
    """Home XI (H1..H11) win the toss and bat; Away XI (A1..A11) bowl."""
    return MatchSetup(
        match_id=match_id,
        home=build_team("HOM", "H", "Home XI", squad),
        away=build_team("AWY", "A", "Away XI", squad),
        overs=overs,
        toss_winner="HOM",
        toss_decision="bat",
        match_format=match_format,
    )


@pytest.fixture
def setup():
    return build_setup()


@pytest.fixture
def fmt(setup):
    return get_format(setup.match_format, overs=setup.overs)


@pytest.fixture
def commentary_pack(tmp_path):
    """A one-template-per-key pack so commentary lines are predictable."""
    pack = {
        "events": {
            "dot": [{"text": "{bowler} to {batter}, no run."}],
            "single": [{"text": "{bowler} to {batter}, 1 run."}],
            "boundary_four": [{"text": "{bowler} to {batter}, FOUR!"}],
            "boundary_six": [{"text": "{bowler} to {batter}, SIX!"}],
            "wide": [{"text": "{bowler} to {batter}, wide."}],
            "wicket_caught": [{"text": "{bowler} to {batter}, OUT! Caught by {fielder}."}],
        },
        "narratives": {
            "milestone_50": ["Fifty for {batter}."],
            "milestone_100": ["Hundred for {batter}."],
            "partnership_50": ["Fifty stand."],
            "maiden_over": ["Maiden for {bowler}."],
            "end_of_over": ["End of over {over}: {over_runs} runs, {team} {score}."],
            "target_reached": ["{team} win."],
        },
    }
    path = tmp_path / "commentary_pack.json"
    path.write_text(json.dumps(pack), encoding="utf-8")
    return str(path)


@pytest.fixture
def make_session(commentary_pack):
    """Factory: make_session(overs=2, squad=11, match_id="m1", **session_kwargs)."""
    def _make(overs=2, squad=11, match_id="m1", **kwargs):
        match_setup = build_setup(match_id=match_id, overs=overs, squad=squad)
        match_fmt = get_format(match_setup.match_format, overs=overs)
        kwargs.setdefault("commentary", CommentaryEngine(data_path=commentary_pack, seed=7,
                                                         format_config=match_fmt))
        kwargs.setdefault("self_check", True)
        return ScoringSession(match_setup, match_fmt, **kwargs)
    return _make


@pytest.fixture
def session(make_session):
    return make_session()


# ==================== Pytest Configuration ====================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )

import json
import logging
import os
import random
from typing import Any, Dict, List, Optional

from scoring.format_config import FormatConfig
from scoring.models import Ball, Match
from scoring.stats import StatsAggregator

logger = logging.getLogger(__name__)

GENERIC_LINE = "Play continues."


class CommentaryEngine:
    """
    Turns a recorded Ball into one line of text.

    ``describe`` must be called *before* the ball is applied: milestones and
    over summaries are detected by comparing the prior state with what the
    ball adds.  Failures never reach the caller; they are logged and the
    generic line is returned.
    """

    def __init__(self, data_path=None, seed=None, format_config: Optional[FormatConfig] = None):
        if data_path is None:
            base_dir = os.path.dirname(os.path.abspath(__file__))
            data_path = os.path.join(base_dir, "data", "commentary_pack.json")

        self.data_path = data_path
        self.fmt = format_config
        self.random = random.Random(seed)
        self.data = self._load_data()
        self.events = self.data.get("events", {})
        self.narratives = self.data.get("narratives", {})

    def _load_data(self):
        try:
            with open(self.data_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load commentary pack from {self.data_path}: {e}")
            return {"events": {}, "narratives": {}}

    def describe(self, match: Match, stats: StatsAggregator, ball: Ball) -> str:
        """Commentary for *ball* given the state just before it."""
        try:
            context = self._context(match, ball)
            micro = self._select_template(self._event_key(ball), context)
            macro = self._check_narratives(match, stats, ball, context)
            if macro:
                return " ".join([micro] + macro)
            return micro
        except Exception:
            logger.exception("Commentary failed for match %s ball %s", match.match_id, ball.label)
            return GENERIC_LINE

    # ------------------------------------------------------------------ #
    #  Event keys and templates
    # ------------------------------------------------------------------ #

    @staticmethod
    def _event_key(ball: Ball) -> str:
        if ball.dead_ball:
            return "dead_ball"
        if ball.dismissal is not None:
            return f"wicket_{ball.dismissal.kind.value}"
        if ball.is_no_ball:
            return "noball"
        if ball.is_wide:
            return "wide"
        if ball.byes:
            return "bye"
        if ball.leg_byes:
            return "legbye"

        runs = ball.runs_off_bat
        if runs == 4:
            return "boundary_four"
        if runs == 6:
            return "boundary_six"
        return {0: "dot", 1: "single", 2: "double", 3: "three"}.get(runs, "runs")

    def _context(self, match: Match, ball: Ball) -> Dict[str, Any]:
        setup = match.setup
        innings = match.current
        fielder = ball.dismissal.fielder_id if ball.dismissal else None
        score_after = innings.total_runs + ball.total_runs
        wickets_after = innings.wickets + (1 if ball.is_wicket else 0)
        return {
            "batter": setup.player_name(ball.striker_id),
            "non_striker": setup.player_name(ball.non_striker_id),
            "bowler": setup.player_name(ball.bowler_id),
            "fielder": setup.player_name(fielder) if fielder else "the fielder",
            "out": setup.player_name(ball.dismissal.player_out_id) if ball.dismissal else "",
            "runs": ball.total_runs,
            "extras": ball.extras,
            "team": match.batting_team.name,
            "fielding_team": match.bowling_team.name,
            "score": f"{score_after}/{wickets_after}",
            "over": ball.over_number + 1,
            "label": ball.label,
            "phase": self._phase_tag(ball),
        }

    def _phase_tag(self, ball: Ball) -> Optional[str]:
        if self.fmt is None:
            return None
        phase = self.fmt.get_phase(ball.over_number)
        return phase.name.lower() if phase else None

    def _select_template(self, key: str, context: Dict[str, Any]) -> str:
        """Pick a template for *key*, preferring ones tagged with the current phase."""
        templates = self.events.get(key, [])
        if not templates:
            if key.startswith("wicket"):
                templates = self.events.get("wicket_caught", [])
            elif key.startswith("boundary"):
                templates = self.events.get("boundary_four", [])
        if not templates:
            return GENERIC_LINE

        tag = context.get("phase")
        if tag:
            matched = [t for t in templates if tag in t.get("tags", [])]
            if matched:
                templates = matched

        template_obj = self.random.choice(templates)
        return template_obj.get("text", GENERIC_LINE).format(**context)

    # ------------------------------------------------------------------ #
    #  Narrative triggers
    # ------------------------------------------------------------------ #

    def _check_narratives(self, match: Match, stats: StatsAggregator, ball: Ball,
                          context: Dict[str, Any]) -> List[str]:
        innings = match.current
        inn_stats = stats.innings.get(innings.number)
        bpo = self.fmt.balls_per_over if self.fmt else 6
        triggers: List[str] = []

        batter = inn_stats.batting.get(ball.striker_id) if inn_stats else None
        before = batter.runs if batter else 0
        after = before + ball.runs_off_bat
        if before < 50 <= after < 100:
            triggers.extend(self._format_narratives("milestone_50", context))
        if before < 100 <= after:
            triggers.extend(self._format_narratives("milestone_100", context))

        partnership = inn_stats.current_partnership if inn_stats else None
        p_before = 0
        if partnership is not None and partnership.involves(ball.striker_id, ball.non_striker_id):
            p_before = partnership.runs
        if p_before < 50 <= p_before + ball.total_runs:
            triggers.extend(self._format_narratives("partnership_50", context))

        over = innings.open_over(bpo)
        legal_so_far = over.legal_balls if over is not None else 0
        conceded_so_far = over.runs_conceded if over is not None else 0
        over_runs = (over.runs if over is not None else 0) + ball.total_runs
        if ball.is_legal and legal_so_far + 1 == bpo:
            if conceded_so_far + ball.runs_conceded == 0:
                triggers.extend(self._format_narratives("maiden_over", context))
            triggers.extend(self._format_narratives("end_of_over", dict(context, over_runs=over_runs)))

        if innings.target is not None and innings.total_runs < innings.target <= innings.total_runs + ball.total_runs:
            triggers.extend(self._format_narratives("target_reached", context))

        return triggers

    def _format_narratives(self, key: str, context: Dict[str, Any]) -> List[str]:
        raw = self.narratives.get(key, [])
        if not raw:
            return []
        text = self.random.choice(raw)
        try:
            return [text.format(**context)]
        except (KeyError, IndexError):
            return [text]

"""
scoring/format_config.py
========================

Single source of truth for all format-specific parameters of the scorer.

Every scoring component that needs a format-sensitive value (over length,
bowler quota, the run value of a wide) reads it from a FormatConfig
instance rather than hardcoding T20 constants.  Adding a new limited-overs
format requires only a new entry in FORMAT_REGISTRY.

Usage
-----
    from scoring.format_config import get_format

    fmt = get_format(setup.match_format, overs=setup.overs)
    fmt.balls_per_innings   # 120 for T20
    fmt.max_bowler_overs    # 4 for T20, 10 for ListA
    fmt.get_phase(over)     # Phase object
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Phase descriptor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Phase:
    """Describes one fielding-restriction phase within a format."""
    name: str
    start: int               # first over index (0-based, inclusive)
    end: int                 # last over index (0-based, inclusive)


# ---------------------------------------------------------------------------
# FormatConfig
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FormatConfig:
    """
    Complete parameterisation of a limited-overs format.

    Attributes
    ----------
    name                    : canonical format name ("T20", "ListA", ...)
    overs                   : overs per innings
    balls_per_over          : legal deliveries in a completed over
    max_wickets             : wickets that end an innings
    max_bowler_overs        : bowling quota per bowler per innings
    allow_consecutive_overs : whether a bowler may bowl back-to-back overs
    wide_runs               : runs awarded for a wide before any run taken
    no_ball_runs            : runs awarded for a no-ball before any run taken
    penalty_runs            : award for a Law 41 offence (deliberate short run)
    phases                  : ordered fielding-restriction phases
    """
    name: str
    overs: int
    max_bowler_overs: int
    balls_per_over: int = 6
    max_wickets: int = 10
    allow_consecutive_overs: bool = False   # ICC 17.6
    wide_runs: int = 1
    no_ball_runs: int = 1
    penalty_runs: int = 5
    phases: Tuple[Phase, ...] = ()

    @property
    def balls_per_innings(self) -> int:
        return self.overs * self.balls_per_over

    def get_phase(self, over: int) -> Optional[Phase]:
        """Return the Phase containing the 0-based over index, if any."""
        for phase in self.phases:
            if phase.start <= over <= phase.end:
                return phase
        return None

    def with_overs(self, overs: int) -> "FormatConfig":
        """
        Return a copy limited to *overs* per innings.

        The bowler quota is rescaled to one fifth of the innings (rounded up)
        and phases that fall outside the shortened innings are clipped.
        """
        if overs == self.overs:
            return self
        phases = tuple(
            Phase(p.name, p.start, min(p.end, overs - 1))
            for p in self.phases if p.start < overs
        )
        return replace(
            self,
            overs=overs,
            max_bowler_overs=max(1, math.ceil(overs / 5)),
            phases=phases,
        )


# ---------------------------------------------------------------------------
# Built-in formats
# ---------------------------------------------------------------------------

_T20 = FormatConfig(
    name="T20",
    overs=20,
    max_bowler_overs=4,
    phases=(
        Phase("Powerplay", start=0, end=5),
        Phase("Middle", start=6, end=15),
        Phase("Death", start=16, end=19),
    ),
)

_LISTA = FormatConfig(
    name="ListA",
    overs=50,
    max_bowler_overs=10,
    phases=(
        Phase("PP1", start=0, end=9),
        Phase("Middle", start=10, end=39),
        Phase("Death", start=40, end=49),
    ),
)

_T10 = FormatConfig(
    name="T10",
    overs=10,
    max_bowler_overs=2,
    phases=(
        Phase("Powerplay", start=0, end=2),
        Phase("Death", start=3, end=9),
    ),
)


# ---------------------------------------------------------------------------
# Public registry: look up by match_format string
# ---------------------------------------------------------------------------

FORMAT_REGISTRY: Dict[str, FormatConfig] = {
    "T20":   _T20,
    "ListA": _LISTA,
    "ODI":   _LISTA,
    "T10":   _T10,
}


def get_format(match_format: Optional[str], overs: Optional[int] = None,
               overrides: Optional[dict] = None) -> FormatConfig:
    """
    Return the FormatConfig for the given match_format string.

    Defaults to T20 for None or unrecognised values.  *overs* shortens or
    lengthens the innings (practice matches are often played over an odd
    number of overs) and *overrides* replaces individual fields, typically
    from the ``scoring.format_overrides`` block of config.yaml.
    """
    fmt = FORMAT_REGISTRY.get(match_format or "T20")
    if fmt is None:
        logger.warning("Unknown match format %r, falling back to T20", match_format)
        fmt = FORMAT_REGISTRY["T20"]
    if overs:
        fmt = fmt.with_overs(int(overs))
    if overrides:
        allowed = {k: v for k, v in overrides.items()
                   if k in FormatConfig.__dataclass_fields__ and k != "phases"}
        ignored = set(overrides) - set(allowed)
        if ignored:
            logger.warning("Ignoring unknown format overrides: %s", sorted(ignored))
        fmt = replace(fmt, **allowed)
    return fmt

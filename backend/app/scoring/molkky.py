"""Mölkky scoring engine.

Two teams take turns throwing; each throw scores 0-12 points. A team wins by
reaching exactly the target score (50). Overshooting resets the score to 25.
Three consecutive misses eliminate a team and hand the win to the opponent.

Every operation is a pure function: it takes a ``GameState`` and returns a
new one. Each history entry carries a snapshot of the state it was recorded
against, which makes ``undo`` an O(1) restore.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

TeamId = Literal["A", "B"]
Status = Literal["SETUP", "PLAYING", "FINISHED"]

TEAM_IDS: tuple[str, str] = ("A", "B")
DEFAULT_TEAM_NAMES = {"A": "Team A", "B": "Team B"}
DEFAULT_CAPTAINS = {"A": "Captain A", "B": "Captain B"}

MISS_NOTE = "Miss"


class InvalidThrow(ValueError):
    """Raised when a thrown value is not an integer in the allowed range."""


class MatchNotInProgress(ValueError):
    """Raised when a throw is applied to a match that is not being played."""


@dataclass(frozen=True)
class Rules:
    target_score: int = 50
    bust_reset_to: int = 25
    max_faults: int = 3
    max_points: int = 12

    def __post_init__(self) -> None:
        if self.target_score <= 0:
            raise ValueError("target_score must be > 0")
        if not 0 < self.bust_reset_to < self.target_score:
            raise ValueError("bust_reset_to must be between 0 and target_score")
        if self.max_faults < 1:
            raise ValueError("max_faults must be >= 1")
        if self.max_points < 1:
            raise ValueError("max_points must be >= 1")


@dataclass(frozen=True)
class Team:
    id: str
    name: str = ""
    roster: tuple[str, ...] = ()
    current_thrower_index: int = 0
    score: int = 0
    faults: int = 0
    is_eliminated: bool = False

    @property
    def captain(self) -> Optional[str]:
        return self.roster[0] if self.roster else None

    @property
    def current_thrower(self) -> Optional[str]:
        if not self.roster:
            return None
        return self.roster[self.current_thrower_index % len(self.roster)]


@dataclass(frozen=True)
class Snapshot:
    """State of both teams immediately before a throw was applied."""

    team_a_score: int
    team_a_faults: int
    team_a_thrower_index: int
    team_b_score: int
    team_b_faults: int
    team_b_thrower_index: int
    turn: str


@dataclass(frozen=True)
class GameLog:
    id: int
    round: int
    team_id: str
    team_name: str
    thrower_name: str
    points: int
    score_after: int
    snapshot: Snapshot
    timestamp: datetime
    note: Optional[str] = None


@dataclass(frozen=True)
class GameState:
    status: str = "SETUP"
    team_a: Team = field(default_factory=lambda: Team(id="A"))
    team_b: Team = field(default_factory=lambda: Team(id="B"))
    current_turn: str = "A"
    starting_team: str = "A"
    round: int = 1
    history: tuple[GameLog, ...] = ()
    winner_id: Optional[str] = None
    win_reason: Optional[str] = None
    rules: Rules = field(default_factory=Rules)

    def team(self, team_id: str) -> Team:
        if team_id == "A":
            return self.team_a
        if team_id == "B":
            return self.team_b
        raise ValueError("team id must be 'A' or 'B'")

    @property
    def current_team(self) -> Team:
        return self.team(self.current_turn)

    @property
    def winner(self) -> Optional[Team]:
        return self.team(self.winner_id) if self.winner_id else None


def other_team(team_id: str) -> str:
    if team_id == "A":
        return "B"
    if team_id == "B":
        return "A"
    raise ValueError("team id must be 'A' or 'B'")


def _with_team(state: GameState, team: Team) -> GameState:
    if team.id == "A":
        return replace(state, team_a=team)
    return replace(state, team_b=team)


def _snapshot(state: GameState) -> Snapshot:
    return Snapshot(
        team_a_score=state.team_a.score,
        team_a_faults=state.team_a.faults,
        team_a_thrower_index=state.team_a.current_thrower_index,
        team_b_score=state.team_b.score,
        team_b_faults=state.team_b.faults,
        team_b_thrower_index=state.team_b.current_thrower_index,
        turn=state.current_turn,
    )


def _restore(team: Team, score: int, faults: int, thrower_index: int) -> Team:
    return replace(
        team,
        score=score,
        faults=faults,
        current_thrower_index=thrower_index,
        is_eliminated=False,
    )


def _clean_name(name: Optional[str], team_id: str) -> str:
    cleaned = (name or "").strip()
    return cleaned or DEFAULT_TEAM_NAMES[team_id]


def _clean_roster(roster: Optional[Sequence[str]], team_id: str) -> tuple[str, ...]:
    # Empty rosters fall back to a placeholder captain
    names = tuple(n.strip() for n in (roster or ()) if n and n.strip())
    return names or (DEFAULT_CAPTAINS[team_id],)


def new_game(rules: Optional[Rules] = None) -> GameState:
    """Return a fresh match waiting for setup."""
    return GameState(rules=rules or Rules())


def start_match(
    name_a: str,
    roster_a: Sequence[str],
    name_b: str,
    roster_b: Sequence[str],
    starting_team: str,
    rules: Optional[Rules] = None,
) -> GameState:
    """Create a match in play with both teams at zero.

    Blank names and empty rosters are replaced by placeholders rather than
    rejected.
    """
    if starting_team not in TEAM_IDS:
        raise ValueError("starting team must be 'A' or 'B'")
    state = GameState(
        status="PLAYING",
        team_a=Team(id="A", name=_clean_name(name_a, "A"), roster=_clean_roster(roster_a, "A")),
        team_b=Team(id="B", name=_clean_name(name_b, "B"), roster=_clean_roster(roster_b, "B")),
        current_turn=starting_team,
        starting_team=starting_team,
        rules=rules or Rules(),
    )
    logger.info(
        "Match started: %s vs %s, team %s throws first",
        state.team_a.name,
        state.team_b.name,
        starting_team,
    )
    return state


def validate_points(points: Any, rules: Optional[Rules] = None) -> int:
    rules = rules or Rules()
    # bool is a subclass of int
    if isinstance(points, bool) or not isinstance(points, int):
        raise InvalidThrow("points must be an integer")
    if not 0 <= points <= rules.max_points:
        raise InvalidThrow(f"points must be between 0 and {rules.max_points}")
    return points


def apply_throw(
    state: GameState, points: int, *, now: Optional[datetime] = None
) -> GameState:
    """Resolve one throw by the team whose turn it is."""
    if state.status != "PLAYING":
        raise MatchNotInProgress(f"cannot throw while match is {state.status}")
    rules = state.rules
    points = validate_points(points, rules)

    acting = state.current_team
    opponent_id = other_team(acting.id)
    snapshot = _snapshot(state)

    score = acting.score
    faults = acting.faults
    note: Optional[str] = None
    eliminated = False
    winner_id: Optional[str] = None
    win_reason: Optional[str] = None

    if points == 0:
        faults += 1
        note = MISS_NOTE
        if faults >= rules.max_faults:
            eliminated = True
            winner_id = opponent_id
            win_reason = f"Opponent missed {rules.max_faults} times in a row"
    else:
        faults = 0
        score += points
        if score == rules.target_score:
            winner_id = acting.id
            win_reason = f"Reached exactly {rules.target_score}"
        elif score > rules.target_score:
            score = rules.bust_reset_to
            note = f"Bust: {rules.target_score} → {rules.bust_reset_to}"

    entry = GameLog(
        id=len(state.history) + 1,
        round=state.round,
        team_id=acting.id,
        team_name=acting.name,
        thrower_name=acting.current_thrower or "",
        points=points,
        score_after=score,
        note=note,
        timestamp=now or datetime.now(timezone.utc),
        snapshot=snapshot,
    )

    updated = replace(
        acting,
        score=score,
        faults=faults,
        is_eliminated=eliminated,
        current_thrower_index=(acting.current_thrower_index + 1) % len(acting.roster),
    )

    next_turn = opponent_id
    next_round = state.round
    if state.history and next_turn == state.starting_team:
        next_round += 1

    result = replace(
        _with_team(state, updated),
        status="FINISHED" if winner_id else "PLAYING",
        current_turn=next_turn,
        round=next_round,
        history=state.history + (entry,),
        winner_id=winner_id,
        win_reason=win_reason,
    )
    logger.debug(
        "Throw %d: team %s (%s) %d pts -> %d%s",
        entry.id,
        acting.id,
        entry.thrower_name,
        points,
        score,
        f" [{note}]" if note else "",
    )
    if winner_id:
        logger.info("Match finished: team %s wins (%s)", winner_id, win_reason)
    return result


def undo(state: GameState) -> GameState:
    """Reverse the most recent throw. Returns ``state`` unchanged if there is none."""
    if not state.history:
        return state
    last = state.history[-1]
    snap = last.snapshot
    return replace(
        state,
        status="PLAYING",
        team_a=_restore(
            state.team_a, snap.team_a_score, snap.team_a_faults, snap.team_a_thrower_index
        ),
        team_b=_restore(
            state.team_b, snap.team_b_score, snap.team_b_faults, snap.team_b_thrower_index
        ),
        current_turn=snap.turn,
        round=last.round,
        history=state.history[:-1],
        winner_id=None,
        win_reason=None,
    )


def reset_to_setup(state: GameState) -> GameState:
    """Abandon the match. Names and rosters are kept to prefill the next setup."""
    logger.info("Match reset to setup after %d throws", len(state.history))
    return GameState(
        status="SETUP",
        team_a=Team(id="A", name=state.team_a.name, roster=state.team_a.roster),
        team_b=Team(id="B", name=state.team_b.name, roster=state.team_b.roster),
        current_turn=state.starting_team,
        starting_team=state.starting_team,
        rules=state.rules,
    )


def rules_from_config(config: Mapping[str, Any]) -> Rules:
    defaults = Rules()
    return Rules(
        target_score=int(config.get("targetScore", defaults.target_score)),
        bust_reset_to=int(config.get("bustResetTo", defaults.bust_reset_to)),
        max_faults=int(config.get("maxFaults", defaults.max_faults)),
    )


def init_state(config: Dict) -> GameState:
    """Start a match from a ruleset-style config mapping.

    Config keys: ``nameA``, ``rosterA``, ``nameB``, ``rosterB``,
    ``startingTeam`` (default ``"A"``) and the optional rule overrides
    ``targetScore``, ``bustResetTo`` and ``maxFaults``.
    """
    return start_match(
        config.get("nameA", ""),
        config.get("rosterA") or [],
        config.get("nameB", ""),
        config.get("rosterB") or [],
        config.get("startingTeam", "A"),
        rules=rules_from_config(config),
    )


def apply(event: Dict, state: GameState) -> GameState:
    kind = event.get("type")
    if kind == "THROW":
        return apply_throw(state, event.get("points"))
    if kind == "UNDO":
        return undo(state)
    raise ValueError("invalid molkky event")


def _team_summary(team: Team, rules: Rules) -> Dict:
    return {
        "id": team.id,
        "name": team.name,
        "score": team.score,
        "faults": team.faults,
        "isEliminated": team.is_eliminated,
        "currentThrower": team.current_thrower,
        "faultWarning": 0 < team.faults == rules.max_faults - 1,
    }


def summary(state: GameState) -> Dict:
    last = state.history[-1] if state.history else None
    return {
        "status": state.status,
        "round": state.round,
        "turn": state.current_turn,
        "teams": {
            "A": _team_summary(state.team_a, state.rules),
            "B": _team_summary(state.team_b, state.rules),
        },
        "winnerId": state.winner_id,
        "winReason": state.win_reason,
        "throws": len(state.history),
        "lastThrow": (
            {
                "teamId": last.team_id,
                "throwerName": last.thrower_name,
                "points": last.points,
                "scoreAfter": last.score_after,
                "note": last.note,
            }
            if last
            else None
        ),
    }

"""Read-only projections of a match for scoreboards, history and reports."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Mapping, Optional

from ..scoring.molkky import GameLog, GameState, Team
from ..time_utils import coerce_utc, utcnow


def points_label(points: int) -> str:
    """Render a thrown value for a score sheet; misses are shown as ``X``."""
    return "X" if points == 0 else str(points)


def team_card(state: GameState, team: Team) -> Dict:
    max_faults = state.rules.max_faults
    return {
        "id": team.id,
        "name": team.name,
        "roster": list(team.roster),
        "captain": team.captain,
        "currentThrower": team.current_thrower,
        "score": team.score,
        "faults": team.faults,
        "isEliminated": team.is_eliminated,
        "isCurrent": state.status == "PLAYING" and state.current_turn == team.id,
        "isWinner": state.winner_id == team.id,
        "faultWarning": 0 < team.faults == max_faults - 1,
    }


def scoreboard(state: GameState) -> Dict[str, Dict]:
    return {
        "A": team_card(state, state.team_a),
        "B": team_card(state, state.team_b),
    }


def log_entry(entry: GameLog) -> Dict:
    return {
        "id": entry.id,
        "round": entry.round,
        "teamId": entry.team_id,
        "teamName": entry.team_name,
        "throwerName": entry.thrower_name,
        "points": entry.points,
        "pointsLabel": points_label(entry.points),
        "scoreAfter": entry.score_after,
        "note": entry.note,
        "timestamp": coerce_utc(entry.timestamp),
    }


def history_rows(state: GameState) -> List[Dict]:
    """History newest first, as shown in the history drawer."""
    return [log_entry(entry) for entry in reversed(state.history)]


def round_rows(state: GameState) -> List[Dict]:
    """One row per round with at most one throw per team.

    Rows run from round 1 to the highest round recorded in history. A team
    without a throw in a round gets ``None`` in its column.
    """
    if not state.history:
        return []

    cells: Dict[tuple[int, str], GameLog] = {}
    for entry in state.history:
        cells.setdefault((entry.round, entry.team_id), entry)

    last_round = max(entry.round for entry in state.history)
    rows = []
    for round_no in range(1, last_round + 1):
        a = cells.get((round_no, "A"))
        b = cells.get((round_no, "B"))
        rows.append(
            {
                "round": round_no,
                "A": log_entry(a) if a else None,
                "B": log_entry(b) if b else None,
            }
        )
    return rows


def build_report(
    state: GameState,
    signatures: Optional[Mapping[str, str]] = None,
    *,
    generated_at: Optional[datetime] = None,
) -> Dict:
    winner = state.winner
    return {
        "status": state.status,
        "round": state.round,
        "generatedAt": coerce_utc(generated_at) or utcnow(),
        "teams": scoreboard(state),
        "winnerId": state.winner_id,
        "winnerName": winner.name if winner else None,
        "winReason": state.win_reason,
        "rounds": round_rows(state),
        "throws": len(state.history),
        "signatures": dict(signatures or {}),
    }

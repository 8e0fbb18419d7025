from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from ..config import MAX_NAME_LENGTH, MAX_ROSTER_SIZE
from ..scoring.molkky import DEFAULT_CAPTAINS, DEFAULT_TEAM_NAMES, TEAM_IDS


class ValidationError(Exception):
    """Raised when submitted match setup data is invalid."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


@dataclass(frozen=True)
class MatchSetup:
    name_a: str
    roster_a: tuple[str, ...]
    name_b: str
    roster_b: tuple[str, ...]
    starting_team: str


def _team_label(team_id: str) -> str:
    return f"Team {team_id}"


def parse_roster(
    raw: Any,
    *,
    team_id: str = "A",
    max_size: Optional[int] = MAX_ROSTER_SIZE,
    max_name_length: Optional[int] = MAX_NAME_LENGTH,
) -> List[str]:
    """Normalize a roster given as a list of names or newline-separated text.

    Rules:
    - Names are trimmed and blank entries dropped
    - The first remaining name is the captain
    - An empty result falls back to a single placeholder captain
    - Names must be unique within the team (case-insensitive)
    - At most ``max_size`` names, each at most ``max_name_length`` characters
    """

    if raw is None:
        entries: Sequence[Any] = []
    elif isinstance(raw, str):
        entries = raw.splitlines()
    elif isinstance(raw, Sequence):
        entries = raw
    else:
        raise ValidationError(
            f"{_team_label(team_id)} roster must be a list of names or text."
        )

    names: List[str] = []
    seen: set[str] = set()
    for i, entry in enumerate(entries, start=1):
        if entry is None:
            continue
        if not isinstance(entry, str):
            raise ValidationError(
                f"{_team_label(team_id)} roster entry #{i} must be a string."
            )
        name = entry.strip()
        if not name:
            continue
        if max_name_length is not None and len(name) > max_name_length:
            raise ValidationError(
                f"{_team_label(team_id)} roster entry #{i} must be at most "
                f"{max_name_length} characters."
            )
        key = name.casefold()
        if key in seen:
            raise ValidationError(
                f"{_team_label(team_id)} roster lists '{name}' more than once."
            )
        seen.add(key)
        names.append(name)

    if max_size is not None and len(names) > max_size:
        raise ValidationError(
            f"{_team_label(team_id)} roster has too many players. Max allowed is {max_size}."
        )

    return names or [DEFAULT_CAPTAINS[team_id]]


def normalize_team_name(
    raw: Any, *, team_id: str = "A", max_length: Optional[int] = MAX_NAME_LENGTH
) -> str:
    if raw is None:
        return DEFAULT_TEAM_NAMES[team_id]
    if not isinstance(raw, str):
        raise ValidationError(f"{_team_label(team_id)} name must be a string.")
    name = raw.strip()
    if not name:
        return DEFAULT_TEAM_NAMES[team_id]
    if max_length is not None and len(name) > max_length:
        raise ValidationError(
            f"{_team_label(team_id)} name must be at most {max_length} characters."
        )
    return name


def sanitize_setup(
    name_a: Any,
    roster_a: Any,
    name_b: Any,
    roster_b: Any,
    starting_team: Any = "A",
) -> MatchSetup:
    start = starting_team.strip().upper() if isinstance(starting_team, str) else starting_team
    if start not in TEAM_IDS:
        raise ValidationError("Starting team must be 'A' or 'B'.")

    return MatchSetup(
        name_a=normalize_team_name(name_a, team_id="A"),
        roster_a=tuple(parse_roster(roster_a, team_id="A")),
        name_b=normalize_team_name(name_b, team_id="B"),
        roster_b=tuple(parse_roster(roster_b, team_id="B")),
        starting_team=start,
    )

from typing import Any, Dict, List, Literal, Optional, Union
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .scoring.molkky import GameLog, GameState, Team
from .services.report import log_entry, points_label


class RulesIn(BaseModel):
    """Optional rule overrides; omitted fields use the official rules."""

    targetScore: int = Field(50, ge=2, le=200)
    bustResetTo: int = Field(25, ge=1)
    maxFaults: int = Field(3, ge=1, le=10)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _validate_bust_reset(self) -> "RulesIn":
        if self.bustResetTo >= self.targetScore:
            raise ValueError("bustResetTo must be lower than targetScore")
        return self


class MatchSetupIn(BaseModel):
    """Team names, rosters and who throws first.

    Rosters may be a list of names or newline-separated text; the first name
    is the team captain.
    """

    nameA: Optional[str] = None
    rosterA: Union[List[Optional[str]], str, None] = None
    nameB: Optional[str] = None
    rosterB: Union[List[Optional[str]], str, None] = None
    startingTeam: Literal["A", "B"] = "A"
    rules: Optional[RulesIn] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("startingTeam", mode="before")
    @classmethod
    def _normalize_starting_team(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class ThrowIn(BaseModel):
    points: int

    @field_validator("points", mode="before")
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        # bool is a subclass of int
        if isinstance(value, bool):
            raise ValueError("points must be an integer")
        return value


class SelectionIn(ThrowIn):
    pass


class SignatureIn(BaseModel):
    dataUrl: str = Field(..., min_length=1)


class TeamOut(BaseModel):
    id: Literal["A", "B"]
    name: str
    roster: List[str]
    captain: Optional[str] = None
    currentThrowerIndex: int
    currentThrower: Optional[str] = None
    score: int
    faults: int
    isEliminated: bool

    @classmethod
    def from_team(cls, team: Team) -> "TeamOut":
        return cls(
            id=team.id,
            name=team.name,
            roster=list(team.roster),
            captain=team.captain,
            currentThrowerIndex=team.current_thrower_index,
            currentThrower=team.current_thrower,
            score=team.score,
            faults=team.faults,
            isEliminated=team.is_eliminated,
        )


class SnapshotOut(BaseModel):
    teamAScore: int
    teamAFaults: int
    teamAThrowerIndex: int
    teamBScore: int
    teamBFaults: int
    teamBThrowerIndex: int
    turn: Literal["A", "B"]


class GameLogOut(BaseModel):
    """A resolved throw as shown in the history table."""

    id: int
    round: int
    teamId: Literal["A", "B"]
    teamName: str
    throwerName: str
    points: int
    pointsLabel: str
    scoreAfter: int
    note: Optional[str] = None
    timestamp: datetime
    snapshot: Optional[SnapshotOut] = None

    @classmethod
    def from_log(cls, entry: GameLog, *, include_snapshot: bool = True) -> "GameLogOut":
        snap = entry.snapshot
        return cls(
            **log_entry(entry),
            snapshot=SnapshotOut(
                teamAScore=snap.team_a_score,
                teamAFaults=snap.team_a_faults,
                teamAThrowerIndex=snap.team_a_thrower_index,
                teamBScore=snap.team_b_score,
                teamBFaults=snap.team_b_faults,
                teamBThrowerIndex=snap.team_b_thrower_index,
                turn=snap.turn,
            )
            if include_snapshot
            else None,
        )


class RulesOut(BaseModel):
    targetScore: int
    bustResetTo: int
    maxFaults: int
    maxPoints: int


class GameStateOut(BaseModel):
    status: Literal["SETUP", "PLAYING", "FINISHED"]
    teamA: TeamOut
    teamB: TeamOut
    currentTurn: Literal["A", "B"]
    startingTeam: Literal["A", "B"]
    round: int
    history: List[GameLogOut] = Field(default_factory=list)
    winnerId: Optional[Literal["A", "B"]] = None
    winReason: Optional[str] = None
    rules: RulesOut

    @classmethod
    def from_state(cls, state: GameState) -> "GameStateOut":
        return cls(
            status=state.status,
            teamA=TeamOut.from_team(state.team_a),
            teamB=TeamOut.from_team(state.team_b),
            currentTurn=state.current_turn,
            startingTeam=state.starting_team,
            round=state.round,
            history=[GameLogOut.from_log(entry) for entry in state.history],
            winnerId=state.winner_id,
            winReason=state.win_reason,
            rules=RulesOut(
                targetScore=state.rules.target_score,
                bustResetTo=state.rules.bust_reset_to,
                maxFaults=state.rules.max_faults,
                maxPoints=state.rules.max_points,
            ),
        )


class MatchSessionOut(BaseModel):
    """A match session: current state plus host-side keypad selection."""

    id: str
    state: GameStateOut
    summary: Dict[str, Any]
    selectedPoints: Optional[int] = None
    selectedLabel: Optional[str] = None
    canUndo: bool
    signatures: List[str] = Field(default_factory=list)
    createdAt: datetime
    updatedAt: datetime


class SelectionOut(BaseModel):
    selectedPoints: Optional[int] = None
    selectedLabel: Optional[str] = None

    @classmethod
    def from_points(cls, points: Optional[int]) -> "SelectionOut":
        return cls(
            selectedPoints=points,
            selectedLabel=points_label(points) if points is not None else None,
        )


class ScoreSheetRowOut(BaseModel):
    round: int
    A: Optional[GameLogOut] = None
    B: Optional[GameLogOut] = None


class ReportTeamOut(BaseModel):
    id: Literal["A", "B"]
    name: str
    roster: List[str]
    captain: Optional[str] = None
    currentThrower: Optional[str] = None
    score: int
    faults: int
    isEliminated: bool
    isCurrent: bool
    isWinner: bool
    faultWarning: bool


class ReportOut(BaseModel):
    """Data behind the printable match report."""

    status: Literal["SETUP", "PLAYING", "FINISHED"]
    round: int
    generatedAt: datetime
    teams: Dict[Literal["A", "B"], ReportTeamOut]
    winnerId: Optional[Literal["A", "B"]] = None
    winnerName: Optional[str] = None
    winReason: Optional[str] = None
    rounds: List[ScoreSheetRowOut] = Field(default_factory=list)
    throws: int
    signatures: Dict[str, str] = Field(default_factory=dict)

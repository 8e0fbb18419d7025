from typing import ClassVar, Optional

from fastapi import HTTPException
from pydantic import BaseModel


class ProblemDetail(BaseModel):
    """RFC 7807 error body returned by every failing endpoint."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Error raised by match handling that maps onto a problem response.

    Subclasses pin ``status_code``, ``title`` and ``code``; only the
    human readable ``detail`` varies per raise.
    """

    status_code: ClassVar[int] = 400
    title: ClassVar[str] = "Bad request"
    code: ClassVar[str] = "bad_request"
    type: ClassVar[str] = "about:blank"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.title)
        self.detail = detail

    def to_problem(self, instance: str | None = None) -> ProblemDetail:
        return ProblemDetail(
            type=self.type,
            title=self.title,
            detail=self.detail,
            status=self.status_code,
            instance=instance,
            code=self.code,
        )


class MatchNotFound(DomainException):
    status_code = 404
    title = "Match not found"
    code = "match_not_found"

    def __init__(self, match_id: str) -> None:
        super().__init__(f"match '{match_id}' not found")
        self.match_id = match_id


class MatchNotPlaying(DomainException):
    status_code = 409
    title = "Match not in progress"
    code = "match_not_playing"


class InvalidThrowValue(DomainException):
    status_code = 400
    title = "Invalid throw"
    code = "throw_invalid"


class SelectionMissing(DomainException):
    status_code = 409
    title = "No points selected"
    code = "selection_missing"

    def __init__(self) -> None:
        super().__init__("select a point value before confirming")


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc

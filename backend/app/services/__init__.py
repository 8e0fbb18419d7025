"""Internal application services (pure helpers, no I/O)."""

from .validation import MatchSetup, ValidationError, parse_roster, sanitize_setup
from .report import build_report, history_rows, round_rows, scoreboard
from .signatures import SIGNATURE_ROLES, SignatureError, normalize_signature

__all__ = [
    "MatchSetup",
    "ValidationError",
    "parse_roster",
    "sanitize_setup",
    "build_report",
    "history_rows",
    "round_rows",
    "scoreboard",
    "SIGNATURE_ROLES",
    "SignatureError",
    "normalize_signature",
]

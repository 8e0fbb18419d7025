from pathlib import Path
from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from ..services import SIGNATURE_ROLES, build_report
from ..sessions import MatchSessionStore, get_store
from ..time_utils import report_date, report_time

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
templates.env.filters["report_date"] = report_date
templates.env.filters["report_time"] = report_time

router = APIRouter()


@router.get("/matches/{mid}/report", response_class=HTMLResponse)
async def printable_report(
    request: Request,
    mid: str,
    store: MatchSessionStore = Depends(get_store),
):
    session = await store.get(mid)
    report = build_report(session.state, session.signatures)
    return templates.TemplateResponse(
        request,
        "report/match.html",
        {"report": report, "roles": SIGNATURE_ROLES},
    )

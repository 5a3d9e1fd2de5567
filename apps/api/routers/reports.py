"""
Reports Router

Read-only JSON view of a user's reps alongside office and team summaries,
plus the endpoint the email intake posts parsed submissions to.
"""

from datetime import date
from typing import Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from core.exceptions import NotFoundError, StoreFailure, StoreUnavailableError, TeamNotFoundError, ValidationError
from schemas import RepDataResponse, StatsResponse, SubmissionRequest, SubmissionResponse, ViewDataResponse
from services.day_buckets import DayBucket, ReportWindow, total_reps
from services.identity import OfficeCatalog, OfficeResolution, get_user_office
from services.rep_aggregation import SubjectKind, office_reps, reps_for_subject, team_reps, todays_reps
from services.rep_stats import Stats, office_stats, team_stats
from services.submissions import SubmissionCommand, handle_submission
from services.team_membership import get_user_teams

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reports"])


def get_office_catalog(request: Request) -> OfficeCatalog:
    """The catalog loaded at startup."""
    catalog = getattr(request.app.state, "office_catalog", None)
    if catalog is None:
        logger.warning("office catalog not loaded; using an empty catalog")
        return OfficeCatalog()
    return catalog


def _series(buckets: List[DayBucket]) -> List[RepDataResponse]:
    return [RepDataResponse(date=b.label, exercise_counts=dict(b.exercise_counts)) for b in buckets]


def _stats(stats: Dict[str, Stats]) -> Dict[str, StatsResponse]:
    return {name: StatsResponse.model_validate(s) for name, s in stats.items()}


@router.get("/json", response_model=ViewDataResponse)
def get_view_data(
    email: str = Query(..., min_length=1),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    catalog: OfficeCatalog = Depends(get_office_catalog),
):
    """
    Everything the report page shows for one user.

    The window defaults to the REPORT_WINDOW_DAYS days ending today (or
    ending on ``end`` when only that is given).
    """
    end = end or date.today()
    window = ReportWindow(start=start, end=end) if start else ReportWindow.ending_on(end, settings.REPORT_WINDOW_DAYS)

    user_reps = reps_for_subject(db, catalog, SubjectKind.USER, email, window)

    return ViewDataResponse(
        user_email=email,
        user_office=get_user_office(db, email),
        user_teams=get_user_teams(db, email),
        offices=catalog.names,
        start_date=window.start,
        end_date=window.end,
        todays_reps=_series(todays_reps(db, catalog, email)),
        user_reps=_series(user_reps),
        user_total_reps=total_reps(user_reps),
        office_stats=_stats(office_stats(db, catalog, window)),
        team_stats=_stats(team_stats(db, catalog, window)),
        office_reps={name: _series(s) for name, s in office_reps(db, catalog, window).items()},
        team_reps={name: _series(s) for name, s in team_reps(db, catalog, window).items()},
    )


@router.post("/submissions", response_model=SubmissionResponse)
def post_submission(
    submission: SubmissionRequest,
    db: Session = Depends(get_db),
    catalog: OfficeCatalog = Depends(get_office_catalog),
):
    """Apply a submission the intake has already parsed."""
    try:
        command = SubmissionCommand(submission.command)
    except ValueError:
        raise ValidationError(f"unknown command: {submission.command}", field="command")

    if command == SubmissionCommand.LOG_REPS and isinstance(submission.payload, str):
        raise ValidationError("log-reps needs exercise counts", field="payload")
    if command != SubmissionCommand.LOG_REPS and not isinstance(submission.payload, str):
        raise ValidationError(f"{command.value} needs a name", field="payload")

    try:
        result = handle_submission(db, catalog, submission.email, command, submission.payload)
    except TeamNotFoundError as e:
        raise NotFoundError("Team", e.team_name)
    except ValueError as e:
        raise ValidationError(str(e), field="payload")
    except StoreFailure as e:
        logger.error(f"submission from {submission.email!r} failed: {e}", exc_info=True)
        raise StoreUnavailableError("unable to record submission")

    response = SubmissionResponse(command=command.value)
    if isinstance(result, OfficeResolution):
        response.office = result.name
        response.office_degraded = result.degraded
    elif isinstance(result, int):
        response.reps_logged = result
    return response

from pydantic import BaseModel, ConfigDict, Field
from datetime import date
from typing import Optional, List, Dict, Union, Tuple


class RepDataResponse(BaseModel):
    """One slot of a rep series: a day label ("11-5") or a clock time ("3:04PM")."""
    date: str
    exercise_counts: Dict[str, int]


class StatsResponse(BaseModel):
    head_count: int
    total_reps: int
    participating: int
    percent_participating: int
    reps_per_person: int
    reps_per_person_participating: int
    reps_per_person_per_day: int
    reps_per_person_participating_per_day: int

    model_config = ConfigDict(from_attributes=True)


class ViewDataResponse(BaseModel):
    user_email: str
    user_office: str
    user_teams: List[str]
    offices: List[str]
    start_date: date
    end_date: date
    todays_reps: List[RepDataResponse]
    user_reps: List[RepDataResponse]
    user_total_reps: int
    office_stats: Dict[str, StatsResponse]
    team_stats: Dict[str, StatsResponse]
    office_reps: Dict[str, List[RepDataResponse]]
    team_reps: Dict[str, List[RepDataResponse]]


class SubmissionRequest(BaseModel):
    """A submission already parsed by the email intake."""
    email: str = Field(..., min_length=1)
    command: str = Field(..., description="log-reps, add-team, remove-team or set-office")
    # Team or office name, or exercise -> count for log-reps
    payload: Union[Dict[str, int], List[Tuple[str, int]], str]


class SubmissionResponse(BaseModel):
    status: str = "ok"
    command: str
    reps_logged: Optional[int] = None
    office: Optional[str] = None
    office_degraded: Optional[bool] = None

"""Persisted daily record and the brief-generation request payload."""

from datetime import date as date_type, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .activity import Activity, to_camel


class TrainingLoadSnapshot(BaseModel):
    """CTL/ATL/TSB as of one day."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ctl: float = 0.0
    atl: float = 0.0
    tsb: float = 0.0
    source: str = "local"
    low_confidence: bool = False


class DailyRecord(BaseModel):
    """Everything the engine persists for one calendar day."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    date: date_type
    recovery_score: Optional[int] = Field(None, ge=0, le=100)
    recovery_band: Optional[str] = None
    recovery_sub_scores: Dict[str, int] = Field(default_factory=dict)
    sleep_score: Optional[int] = Field(None, ge=0, le=100)
    sleep_band: Optional[str] = None
    sleep_sub_scores: Dict[str, int] = Field(default_factory=dict)
    stress_acute: Optional[int] = Field(None, ge=0, le=100)
    stress_chronic: Optional[int] = Field(None, ge=0, le=100)
    stress_threshold: Optional[int] = None
    stress_alert: bool = False
    training_load: Optional[TrainingLoadSnapshot] = None
    illness: Optional[Dict[str, Any]] = None
    summary: Optional[str] = None
    brief_text: Optional[str] = None
    updated_at: datetime = Field(default_factory=datetime.now)


class BriefRequest(BaseModel):
    """Payload sent to the remote brief-generation service."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    date: date_type
    recovery_score: Optional[int] = None
    sleep_score: Optional[int] = None
    hrv_delta_percent: Optional[float] = None
    rhr_delta_percent: Optional[float] = None
    sleep_delta_hours: Optional[float] = None
    tsb: Optional[float] = None
    target_tss_low: Optional[float] = None
    target_tss_high: Optional[float] = None
    completed_activities: List[Activity] = Field(default_factory=list)
    illness: Optional[Dict[str, Any]] = None


class BriefResponse(BaseModel):
    """Plain-text brief returned by the remote service."""

    text: str
    cached: bool = False

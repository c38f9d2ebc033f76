"""Request bodies for the pipeline function endpoints.

Most fields are optional so the services can answer missing input with
their own messages and status codes.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LeadSelection(BaseModel):
    """``lead_id`` or ``lead_ids``."""

    lead_id: Optional[str] = None
    lead_ids: Optional[list[str]] = None

    @field_validator("lead_ids")
    @classmethod
    def drop_blank_ids(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None:
            return None
        return [v for v in value if v]


class CsvRow(BaseModel):
    company_name: str = ""
    existing_data: Optional[dict[str, Any]] = None


class CsvEnrichRequest(BaseModel):
    rows: Optional[list[CsvRow]] = None
    row_index: Optional[int] = None


class LeadIdsRequest(BaseModel):
    lead_ids: Optional[list[str]] = None


class ValidateLeadRequest(LeadSelection):
    validate_email: bool = True
    validate_phone: bool = True


class ScoreLeadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lead_id: Optional[str] = Field(default=None, alias="leadId")


class AnalyticsRequest(BaseModel):
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    source_type: Optional[str] = None


class AutoNurtureRequest(BaseModel):
    mode: Literal["auto", "alerts_only", "nurture_only"] = "auto"


class TriggerWebhookRequest(LeadSelection):
    event_type: str = "high_priority_lead"
    trigger_reason: str = "manual"
    webhook_url: Optional[str] = None

    @field_validator("webhook_url")
    @classmethod
    def require_http_url(cls, value: Optional[str]) -> Optional[str]:
        if value and not value.startswith(("http://", "https://")):
            raise ValueError("webhook_url must be an http(s) URL")
        return value or None


class WaterfallRequest(BaseModel):
    domain: Optional[str] = None
    name: Optional[str] = None
    company_name: Optional[str] = None
    target_titles: Optional[list[str]] = None


class ReEnrichStaleRequest(BaseModel):
    threshold_days: int = Field(default=30, ge=1)
    max_leads: int = Field(default=25, ge=1, le=500)
    lead_ids: Optional[list[str]] = None


class DedupeRequest(BaseModel):
    job_id: Optional[str] = None
    lead_ids: Optional[list[str]] = None
    auto_merge: bool = False


class ScoringCriteriaBody(BaseModel):
    target_industry: Optional[str] = None
    target_titles: list[str] = Field(default_factory=list)
    min_company_size: Optional[int] = Field(default=None, ge=0)
    max_company_size: Optional[int] = Field(default=None, ge=0)


class CompositeScoringRequest(BaseModel):
    lead_ids: Optional[list[str]] = None
    criteria: Optional[ScoringCriteriaBody] = None


class PipelineRunRequest(BaseModel):
    lead_ids: list[str] = Field(default_factory=list)
    skip_steps: list[str] = Field(default_factory=list)
    criteria: Optional[ScoringCriteriaBody] = None

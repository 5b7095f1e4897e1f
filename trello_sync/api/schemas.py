"""
Trello Sync — API request/response schemas (Pydantic).

Field names follow the wire format the controller already speaks
(camelCase), so the models declare aliases and accept either spelling.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from trello_sync.domain.models import DeliverableResult, SyncReport


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# POST /addDeliverablesToTrello
# ---------------------------------------------------------------------------

class AddDeliverablesRequest(_WireModel):
    deliverable_ids: List[str] = Field(default_factory=list, alias="deliverableIds")
    tax_season_id: str = Field(..., alias="taxSeasonId", min_length=1)


class DeliverableResultSchema(_WireModel):
    deliverable_id: str = Field(..., alias="deliverableId")
    status: str                                  # created | updated | failed
    stage: Optional[str] = None                  # resolve | reconcile
    error_type: Optional[str] = Field(None, alias="errorType")
    error: Optional[str] = None
    card_id: Optional[str] = Field(None, alias="cardId")
    checkitem_id: Optional[str] = Field(None, alias="checkitemId")

    @classmethod
    def from_result(cls, result: DeliverableResult) -> "DeliverableResultSchema":
        return cls(**result.to_dict())


class AddDeliverablesResponse(_WireModel):
    num_updated_deliverables: int = Field(0, alias="numUpdatedDeliverables")
    results: List[DeliverableResultSchema] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: SyncReport) -> "AddDeliverablesResponse":
        return cls(
            num_updated_deliverables=report.num_updated_deliverables,
            results=[DeliverableResultSchema.from_result(r) for r in report.results],
        )


class ErrorResponse(BaseModel):
    detail: str
    type: str


# ---------------------------------------------------------------------------
# GET /api/health
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = ""
    db_connected: bool = False
    sync_runs: int = 0
    cards_created: int = 0
    checkitems_created: int = 0
    checkitems_updated: int = 0
    deliverable_failures: int = 0
    errors_last_hour: int = 0

"""
trello_sync.domain.models — Canonical dataclass models.

These are the single source of truth for data structures flowing through
the sync engine.  Layers that produce or consume these models must not
invent their own parallel types.

Import pattern::

    from trello_sync.domain.models import BoardSnapshot, DeliverableContext, SyncReport
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from trello_sync.domain.enums import BoardType, SyncStage, SyncStatus


# ---------------------------------------------------------------------------
# Internal business objects (loaded from the controller tables)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Preparer:
    """The staff member assigned to a client for one tax season."""
    id: str
    first_name: str
    last_name: str

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class Client:
    id: str
    first_name: str
    last_name: str
    rank: Optional[str] = None


@dataclass(frozen=True)
class Entity:
    """A sub-entity of a client (the person, trust or company filed for)."""
    id: str
    name: str
    client: Client


@dataclass(frozen=True)
class Deliverable:
    """
    One piece of work for an entity in a tax season.

    ``type_name`` is the deliverable type display name ("Tax Return",
    "Financial Statements", ...) and decides the board; ``type_detail_name``
    is the finer label shown on the checklist item ("T1", "T2", ...).
    """
    id: str
    tax_season_id: str
    entity: Entity
    type_name: str
    type_detail_name: str
    preparer: Optional[Preparer] = None

    @property
    def client(self) -> Client:
        return self.entity.client


# ---------------------------------------------------------------------------
# Board snapshot (fetched once per sync run, shared read-only)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TrelloList:
    id: str
    name: str


@dataclass(frozen=True)
class TrelloLabel:
    id: str
    name: str


@dataclass(frozen=True)
class BoardSnapshot:
    """Lists and labels of one board, frozen for the lifetime of a run."""
    id: str
    name: str = ""
    lists: Tuple[TrelloList, ...] = ()
    labels: Tuple[TrelloLabel, ...] = ()

    def find_list_containing(self, fragment: str) -> Optional[TrelloList]:
        """First list whose name contains ``fragment``."""
        return next((lst for lst in self.lists if fragment in lst.name), None)

    def find_label(self, name: str) -> Optional[TrelloLabel]:
        return next((lbl for lbl in self.labels if lbl.name == name), None)


# ---------------------------------------------------------------------------
# Sync configuration (built once at process start)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BoardOptions:
    """Per-board-category conventions."""
    primary_checklist_name: str
    list_to_create_cards_in: str


@dataclass(frozen=True)
class SyncSettings:
    """
    Everything the resolver needs that used to be hard-coded.

    ``rank_members`` is an ordered table of ``(client rank, member id)``
    pairs.  A client whose rank is not listed gets the member of the last
    entry; an empty table means new cards get no members.
    """
    controller_url: str
    reference_board_id: str
    boards: Mapping[BoardType, BoardOptions]
    template_list_name: str = "Templates"
    template_card_name: str = "Tax Year"
    rank_members: Tuple[Tuple[str, str], ...] = ()

    def board_options(self, board_type: BoardType) -> BoardOptions:
        return self.boards[board_type]

    def checklist_name(self, board_type: BoardType) -> str:
        return self.boards[board_type].primary_checklist_name

    def member_for_rank(self, rank: Optional[str]) -> Optional[str]:
        if not self.rank_members:
            return None
        for table_rank, member_id in self.rank_members:
            if rank is not None and str(rank) == table_rank:
                return member_id
        return self.rank_members[-1][1]


# ---------------------------------------------------------------------------
# Resolution / reconciliation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DeliverableContext:
    """Enriched view of one deliverable, ready for reconciliation."""
    deliverable: Deliverable
    board_type: BoardType
    checklist_name: str
    card_id: str
    checkitem_id: Optional[str] = None

    @property
    def deliverable_id(self) -> str:
        return self.deliverable.id

    @property
    def tax_season_id(self) -> str:
        return self.deliverable.tax_season_id


@dataclass
class DeliverableResult:
    """Outcome for one requested deliverable id."""
    deliverable_id: str
    status: SyncStatus
    stage: Optional[SyncStage] = None
    error_type: Optional[str] = None
    error: Optional[str] = None
    card_id: Optional[str] = None
    checkitem_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not SyncStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        d = dataclasses.asdict(self)
        d["status"] = self.status.value
        d["stage"] = self.stage.value if self.stage else None
        return d


@dataclass
class SyncReport:
    """
    Result of one ``sync_deliverables`` call.

    ``num_updated_deliverables`` counts deliverables that completed
    resolution (attempted syncs); ``results`` tells callers which of them
    actually made it to the board.
    """
    num_updated_deliverables: int = 0
    results: List[DeliverableResult] = field(default_factory=list)

    @property
    def failed(self) -> List[DeliverableResult]:
        return [r for r in self.results if not r.ok]

    @property
    def succeeded(self) -> List[DeliverableResult]:
        return [r for r in self.results if r.ok]

"""
Pytest configuration and shared fixtures.

Fixtures available to all tests:
  • db                — in-memory SQLite ``Database`` with all tables created
  • store             — ``RelationStore`` on top of ``db``
  • settings          — ``SyncSettings`` used across the engine tests
  • trello            — ``FakeTrello`` seeded with a tax-return board and the
                        reference board holding the "Tax Year" template
  • source            — ``StaticDeliverableSource`` holding deliverable D1
  • add_relation(...) — write a relation row directly
"""

from __future__ import annotations

import copy
import itertools
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest

# Ensure the project root is on the path so all trello_sync imports resolve.
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from trello_sync.core.errors import ServiceError  # noqa: E402
from trello_sync.database import Database, TrelloRelation  # noqa: E402
from trello_sync.domain.enums import BoardType, RelationType  # noqa: E402
from trello_sync.domain.models import (  # noqa: E402
    BoardOptions,
    Client,
    Deliverable,
    Entity,
    Preparer,
    SyncSettings,
)
from trello_sync.metrics import reset_metrics_for_tests  # noqa: E402
from trello_sync.sync.deliverables import StaticDeliverableSource  # noqa: E402
from trello_sync.sync.relation_store import RelationStore  # noqa: E402

SEASON = "season-2024"
OTHER_SEASON = "season-2023"
CONTROLLER_URL = "https://controller.test"
TAX_BOARD_ID = "board-tax"
FS_BOARD_ID = "board-fs"
REFERENCE_BOARD_ID = "board-reference"


# ---------------------------------------------------------------------------
# In-memory Trello
# ---------------------------------------------------------------------------

class FakeTrello:
    """Minimal in-memory stand-in for ``TrelloClient``.

    Boards hold lists and labels, lists hold cards, cards hold checklists.
    Every call is appended to ``calls`` as ``(operation, args)``; put an
    operation name in ``fail`` to make it raise ``ServiceError``.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.boards: Dict[str, Dict[str, Any]] = {}
        self.lists: Dict[str, Dict[str, Any]] = {}
        self.cards: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.fail: Dict[str, int] = {}

    # -- seeding -------------------------------------------------------

    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def add_board(self, board_id: str, name: str = "") -> Dict[str, Any]:
        board = {"id": board_id, "name": name or board_id, "lists": [], "labels": []}
        self.boards[board_id] = board
        return board

    def add_list(self, board_id: str, name: str) -> str:
        list_id = self.new_id("list")
        self.lists[list_id] = {"id": list_id, "name": name, "idBoard": board_id, "cards": []}
        self.boards[board_id]["lists"].append(list_id)
        return list_id

    def add_label(self, board_id: str, name: str) -> str:
        label_id = self.new_id("label")
        self.boards[board_id]["labels"].append({"id": label_id, "name": name})
        return label_id

    def add_card(self, list_id: str, name: str, checklists: Optional[List[str]] = None) -> str:
        card_id = self.new_id("card")
        self.cards[card_id] = {
            "id": card_id,
            "name": name,
            "idList": list_id,
            "checklists": [
                {"id": self.new_id("checklist"), "name": cl, "idCard": card_id, "checkItems": []}
                for cl in (checklists or [])
            ],
        }
        self.lists[list_id]["cards"].append(card_id)
        return card_id

    def checklist(self, card_id: str, name: str) -> Dict[str, Any]:
        return next(cl for cl in self.cards[card_id]["checklists"] if cl["name"] == name)

    def add_checkitem(self, card_id: str, checklist_name: str, name: str) -> str:
        item_id = self.new_id("checkitem")
        self.checklist(card_id, checklist_name)["checkItems"].append({"id": item_id, "name": name})
        return item_id

    def remove_checkitem(self, card_id: str, checklist_name: str, item_id: str) -> None:
        cl = self.checklist(card_id, checklist_name)
        cl["checkItems"] = [ci for ci in cl["checkItems"] if ci["id"] != item_id]

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    def _record(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if self.fail.get(operation):
            self.fail[operation] -= 1
            raise ServiceError("boom", operation=operation, status_code=500)

    # -- TrelloClient surface -----------------------------------------

    async def get_board(self, board_id: str) -> Dict[str, Any]:
        self._record("get_board", board_id)
        board = self.boards[board_id]
        return {"id": board["id"], "name": board["name"]}

    async def get_lists(self, board_id: str) -> List[Dict[str, Any]]:
        self._record("get_lists", board_id)
        return [
            {"id": lid, "name": self.lists[lid]["name"]}
            for lid in self.boards[board_id]["lists"]
        ]

    async def get_labels(self, board_id: str) -> List[Dict[str, Any]]:
        self._record("get_labels", board_id)
        return copy.deepcopy(self.boards[board_id]["labels"])

    async def get_cards_for_list(self, list_id: str) -> List[Dict[str, Any]]:
        self._record("get_cards_for_list", list_id)
        return [
            {"id": cid, "name": self.cards[cid]["name"]}
            for cid in self.lists[list_id]["cards"]
        ]

    async def get_checklists(self, card_id: str) -> List[Dict[str, Any]]:
        self._record("get_checklists", card_id)
        return copy.deepcopy(self.cards[card_id]["checklists"])

    async def create_checklist_item(self, checklist_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        self._record("create_checklist_item", checklist_id, dict(data))
        for card in self.cards.values():
            for cl in card["checklists"]:
                if cl["id"] == checklist_id:
                    item = {"id": self.new_id("checkitem"), "name": data["name"]}
                    cl["checkItems"].append(item)
                    return dict(item)
        raise ServiceError("checklist not found", operation="create_checklist_item", status_code=404)

    async def update_checklist_item(
        self, card_id: str, checkitem_id: str, data: Dict[str, Any],
    ) -> Dict[str, Any]:
        self._record("update_checklist_item", card_id, checkitem_id, dict(data))
        for cl in self.cards[card_id]["checklists"]:
            for item in cl["checkItems"]:
                if item["id"] == checkitem_id:
                    item.update(data)
                    return dict(item)
        raise ServiceError("checkitem not found", operation="update_checklist_item", status_code=404)

    async def create_card(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self._record("create_card", dict(data))
        source = self.cards[data["idCardSource"]]
        names = [cl["name"] for cl in source["checklists"]] if data.get("keepFromSource") == "checklists" else []
        card_id = self.add_card(data["idList"], data["name"], checklists=names)
        self.cards[card_id].update({k: v for k, v in data.items() if k not in ("idCardSource",)})
        return {"id": card_id, "name": data["name"]}

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _reset_metrics():
    reset_metrics_for_tests()
    yield


@pytest.fixture
def db():
    database = Database("sqlite:///:memory:")
    database.init_db()
    yield database
    database.dispose()


@pytest.fixture
def store(db):
    return RelationStore(db)


@pytest.fixture
def add_relation(db):
    def _add(
        controller_id: str,
        trello_id: str,
        relation_type: RelationType,
        board_type: BoardType = BoardType.TAX_RETURN,
        tax_season_id: str = SEASON,
        archived: Optional[datetime] = None,
    ) -> None:
        with db.session() as session:
            session.add(TrelloRelation(
                controller_id=controller_id,
                trello_id=trello_id,
                tax_season_id=tax_season_id,
                type=relation_type.value,
                board_type=board_type.value,
                archived=archived,
            ))
            session.commit()
    return _add


@pytest.fixture
def relations(db):
    """Return every relation row as a list of plain dicts."""
    def _all() -> List[Dict[str, Any]]:
        with db.session() as session:
            rows = session.query(TrelloRelation).order_by(TrelloRelation.id).all()
            return [
                {
                    "controller_id": r.controller_id,
                    "trello_id": r.trello_id,
                    "tax_season_id": r.tax_season_id,
                    "type": r.type,
                    "board_type": r.board_type,
                    "archived": r.archived,
                }
                for r in rows
            ]
    return _all


@pytest.fixture
def settings():
    return SyncSettings(
        controller_url=CONTROLLER_URL,
        reference_board_id=REFERENCE_BOARD_ID,
        boards={
            BoardType.TAX_RETURN: BoardOptions("Returns to File", "Prep"),
            BoardType.FINANCIAL_STATEMENTS: BoardOptions("Financial Statements to Prepare", "Prep"),
        },
        rank_members=(("A", "member-a"), ("B", "member-b"), ("C", "member-c")),
    )


@pytest.fixture
def trello():
    fake = FakeTrello()

    fake.add_board(TAX_BOARD_ID, "2024 Tax Returns")
    fake.add_list(TAX_BOARD_ID, "Intake")
    fake.add_list(TAX_BOARD_ID, "1. Prep")
    fake.add_list(TAX_BOARD_ID, "Done")
    fake.add_label(TAX_BOARD_ID, "Jane Doe")
    fake.add_label(TAX_BOARD_ID, "Sam Roe")

    fake.add_board(FS_BOARD_ID, "2024 Financial Statements")
    fake.add_list(FS_BOARD_ID, "Prep")
    fake.add_label(FS_BOARD_ID, "Jane Doe")

    fake.add_board(REFERENCE_BOARD_ID, "Reference")
    templates = fake.add_list(REFERENCE_BOARD_ID, "Templates")
    fake.add_card(templates, "Engagement")
    fake.add_card(
        templates, "Tax Year",
        checklists=["Returns to File", "Financial Statements to Prepare", "Notes"],
    )
    return fake


def make_deliverable(
    deliverable_id: str = "D1",
    type_name: str = "Tax Return",
    type_detail_name: str = "T1",
    entity_id: str = "E1",
    entity_name: str = "John Smith",
    client_id: str = "C1",
    rank: Optional[str] = "B",
    preparer: Optional[Preparer] = Preparer("P1", "Jane", "Doe"),
    tax_season_id: str = SEASON,
) -> Deliverable:
    client = Client(id=client_id, first_name="John", last_name="Smith", rank=rank)
    return Deliverable(
        id=deliverable_id,
        tax_season_id=tax_season_id,
        entity=Entity(id=entity_id, name=entity_name, client=client),
        type_name=type_name,
        type_detail_name=type_detail_name,
        preparer=preparer,
    )


@pytest.fixture
def source():
    return StaticDeliverableSource([make_deliverable()])

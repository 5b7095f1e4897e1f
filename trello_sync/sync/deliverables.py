"""
trello_sync.sync.deliverables — Where deliverables are loaded from.

Design: the resolver only depends on the ``DeliverableSource`` ABC with a
single async ``get_deliverable`` method, so the controller tables can be
swapped for an API-backed source without touching the sync engine.

Current implementations:
    SqlDeliverableSource  — reads the controller tables through SQLAlchemy
    StaticDeliverableSource — in-memory mapping (tests, dry runs)

Usage::

    source = SqlDeliverableSource(get_database())
    deliverable = await source.get_deliverable(deliverable_id, tax_season_id)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from trello_sync.core.errors import StoreError
from trello_sync.database import (
    ClientPreparerRow,
    ClientRow,
    Database,
    DeliverableRow,
    DeliverableTypeDetailRow,
    DeliverableTypeRow,
    EntityRow,
    PreparerRow,
)
from trello_sync.domain.models import Client, Deliverable, Entity, Preparer

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class DeliverableSource(ABC):
    """Loads a deliverable with its entity, client, type and preparer."""

    @abstractmethod
    async def get_deliverable(
        self, deliverable_id: str, tax_season_id: str,
    ) -> Optional[Deliverable]:
        """Return the deliverable, or ``None`` if it is not in the tax season."""


# ---------------------------------------------------------------------------
# SQL (controller tables)
# ---------------------------------------------------------------------------

class SqlDeliverableSource(DeliverableSource):

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get_deliverable(
        self, deliverable_id: str, tax_season_id: str,
    ) -> Optional[Deliverable]:
        try:
            return await self._db.run(
                lambda db: self._load(db, deliverable_id, tax_season_id)
            )
        except SQLAlchemyError as exc:
            logger.error("SqlDeliverableSource: load of %s failed: %s", deliverable_id, exc)
            raise StoreError(str(exc), operation="get_deliverable") from exc

    @staticmethod
    def _load(db: Session, deliverable_id: str, tax_season_id: str) -> Optional[Deliverable]:
        row = db.execute(
            select(
                DeliverableRow.id,
                DeliverableRow.tax_season_id,
                EntityRow.id.label("entity_id"),
                EntityRow.name.label("entity_name"),
                ClientRow.id.label("client_id"),
                ClientRow.first_name,
                ClientRow.last_name,
                ClientRow.rank,
                DeliverableTypeRow.name.label("type_name"),
                DeliverableTypeDetailRow.name.label("type_detail_name"),
            )
            .join(EntityRow, EntityRow.id == DeliverableRow.entity_id)
            .join(ClientRow, ClientRow.id == EntityRow.client_id)
            .join(
                DeliverableTypeDetailRow,
                DeliverableTypeDetailRow.id == DeliverableRow.type_detail_id,
            )
            .join(DeliverableTypeRow, DeliverableTypeRow.id == DeliverableTypeDetailRow.type_id)
            .where(
                DeliverableRow.id == deliverable_id,
                DeliverableRow.tax_season_id == tax_season_id,
            )
        ).first()
        if row is None:
            return None

        preparer_row = db.execute(
            select(PreparerRow)
            .join(ClientPreparerRow, ClientPreparerRow.preparer_id == PreparerRow.id)
            .where(
                ClientPreparerRow.client_id == row.client_id,
                ClientPreparerRow.tax_season_id == tax_season_id,
            )
        ).scalar_one_or_none()
        preparer = None
        if preparer_row is not None:
            preparer = Preparer(
                id=preparer_row.id,
                first_name=preparer_row.first_name,
                last_name=preparer_row.last_name,
            )

        client = Client(
            id=row.client_id,
            first_name=row.first_name,
            last_name=row.last_name,
            rank=row.rank,
        )
        return Deliverable(
            id=row.id,
            tax_season_id=row.tax_season_id,
            entity=Entity(id=row.entity_id, name=row.entity_name, client=client),
            type_name=row.type_name,
            type_detail_name=row.type_detail_name,
            preparer=preparer,
        )


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class StaticDeliverableSource(DeliverableSource):
    """Serves a fixed set of deliverables keyed by id."""

    def __init__(self, deliverables: Iterable[Deliverable] = ()) -> None:
        self._by_id: Dict[str, Deliverable] = {d.id: d for d in deliverables}

    def add(self, deliverable: Deliverable) -> None:
        self._by_id[deliverable.id] = deliverable

    async def get_deliverable(
        self, deliverable_id: str, tax_season_id: str,
    ) -> Optional[Deliverable]:
        deliverable = self._by_id.get(deliverable_id)
        if deliverable is None or deliverable.tax_season_id != tax_season_id:
            return None
        return deliverable

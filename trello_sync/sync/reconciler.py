"""
trello_sync.sync.reconciler — Bring one checklist item in line with its deliverable.

The recorded checkitem id is only trusted if the item is still on the
resolved checklist.  If it is gone (deleted by hand, or the deliverable now
lives on another card) a new item is created and the stale relation is
replaced, archive and insert in one transaction.  An item with the same text
that no deliverable claims (posted by a run that failed before recording it)
is adopted instead of posting a duplicate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from trello_sync.core.errors import ChecklistMissing, ConflictError
from trello_sync.core.utils import checkitem_name, find_by_name, has_item_id
from trello_sync.domain.enums import RelationType, SyncStatus
from trello_sync.domain.models import DeliverableContext
from trello_sync.metrics import record_checkitem
from trello_sync.sync.relation_store import RelationStore
from trello_sync.trello.client import TrelloClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    status: SyncStatus      # CREATED or UPDATED
    checkitem_id: str
    checklist_id: str


class CheckitemReconciler:

    def __init__(self, store: RelationStore, trello: TrelloClient, controller_url: str) -> None:
        self._store = store
        self._trello = trello
        self._controller_url = controller_url

    async def reconcile(self, ctx: DeliverableContext) -> ReconcileResult:
        checklist = await self._find_checklist(ctx)
        data = {"name": checkitem_name(ctx.deliverable, self._controller_url)}

        if has_item_id(checklist.get("checkItems") or [], ctx.checkitem_id):
            return await self._update(ctx, checklist, data)
        return await self._create(ctx, checklist, data)

    async def _find_checklist(self, ctx: DeliverableContext) -> Dict[str, Any]:
        checklists = await self._trello.get_checklists(ctx.card_id)
        checklist = find_by_name(checklists, ctx.checklist_name)
        if checklist is None:
            raise ChecklistMissing(
                f"no checklist {ctx.checklist_name!r} on card {ctx.card_id}",
                operation="get_checklists",
            )
        return checklist

    async def _update(
        self, ctx: DeliverableContext, checklist: Dict[str, Any], data: Dict[str, str],
    ) -> ReconcileResult:
        logger.info("PUT checklist item %s : %s", ctx.checkitem_id, data["name"])
        updated = await self._trello.update_checklist_item(ctx.card_id, ctx.checkitem_id, data)
        checkitem_id = updated.get("id", ctx.checkitem_id)
        await self._store.update(
            ctx.deliverable_id,
            checkitem_id,
            ctx.tax_season_id,
            relation_type=RelationType.DELIVERABLE,
            board_type=ctx.board_type,
        )
        record_checkitem(created=False)
        return ReconcileResult(SyncStatus.UPDATED, checkitem_id, checklist["id"])

    async def _create(
        self, ctx: DeliverableContext, checklist: Dict[str, Any], data: Dict[str, str],
    ) -> ReconcileResult:
        adopted = await self._find_orphan(ctx, checklist, data["name"])
        if adopted is not None:
            logger.info(
                "Checklist item %s already carries %s; recording it for deliverable %s",
                adopted, data["name"], ctx.deliverable_id,
            )
            await self._record(ctx, adopted)
            record_checkitem(created=False)
            return ReconcileResult(SyncStatus.UPDATED, adopted, checklist["id"])

        logger.info("POST new checklist item on %s : %s", checklist["id"], data["name"])
        created = await self._trello.create_checklist_item(checklist["id"], data)
        record_checkitem(created=True)
        await self._record(ctx, created["id"])
        return ReconcileResult(SyncStatus.CREATED, created["id"], checklist["id"])

    async def _find_orphan(
        self, ctx: DeliverableContext, checklist: Dict[str, Any], name: str,
    ) -> Optional[str]:
        """An item with this exact text that no deliverable relation claims.

        Left behind when a previous run posted the item but failed to record it.
        """
        for item in checklist.get("checkItems") or []:
            if item.get("name") != name:
                continue
            owner = await self._store.owner_of(
                item["id"], RelationType.DELIVERABLE, ctx.board_type, ctx.tax_season_id,
            )
            if owner is None:
                return item["id"]
        return None

    async def _record(self, ctx: DeliverableContext, checkitem_id: str) -> None:
        try:
            if ctx.checkitem_id:
                logger.info(
                    "Checklist item %s for deliverable %s is no longer on card %s; replacing relation",
                    ctx.checkitem_id, ctx.deliverable_id, ctx.card_id,
                )
                await self._store.replace(
                    ctx.deliverable_id, checkitem_id, ctx.tax_season_id,
                    RelationType.DELIVERABLE, ctx.board_type,
                )
            else:
                await self._store.insert(
                    ctx.deliverable_id, checkitem_id, ctx.tax_season_id,
                    RelationType.DELIVERABLE, ctx.board_type,
                )
        except ConflictError as exc:
            logger.warning("Deliverable %s: %s", ctx.deliverable_id, exc)

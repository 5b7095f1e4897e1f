"""
Sync orchestrator — fans a batch of deliverables out to the resolver and
reconciler.

Run with::

    orchestrator = SyncOrchestrator.from_config(database, trello)
    report = await orchestrator.sync_deliverables(deliverable_ids, tax_season_id)

Per-deliverable failures are logged, counted and returned in
``report.results``; only failing to load the season's boards aborts a batch.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from trello_sync import config
from trello_sync.core.errors import SyncError
from trello_sync.database import Database
from trello_sync.domain.enums import BoardType, SyncStage, SyncStatus
from trello_sync.domain.models import (
    BoardSnapshot,
    DeliverableContext,
    DeliverableResult,
    SyncReport,
    SyncSettings,
)
from trello_sync.metrics import record_deliverable_failure, record_sync_run
from trello_sync.sync.deliverables import DeliverableSource, SqlDeliverableSource
from trello_sync.sync.reconciler import CheckitemReconciler
from trello_sync.sync.relation_store import RelationStore
from trello_sync.sync.resolver import BoardSnapshots, DeliverableResolver
from trello_sync.trello.boards import load_board_snapshot
from trello_sync.trello.client import TrelloClient

logger = logging.getLogger(__name__)

# Tax-return board is loaded first; it is the one nearly every batch needs
BOARD_LOAD_ORDER = (BoardType.TAX_RETURN, BoardType.FINANCIAL_STATEMENTS)


def _failure(deliverable_id: str, stage: SyncStage, exc: BaseException) -> DeliverableResult:
    operation = getattr(exc, "operation", "") or stage.value
    if isinstance(exc, SyncError):
        logger.error("Error : %s : deliverable %s : %s", operation, deliverable_id, exc)
    else:
        logger.error(
            "Unexpected error : %s : deliverable %s : %r",
            operation, deliverable_id, exc, exc_info=exc,
        )
    record_deliverable_failure()
    return DeliverableResult(
        deliverable_id=deliverable_id,
        status=SyncStatus.FAILED,
        stage=stage,
        error_type=type(exc).__name__,
        error=str(exc),
    )


class SyncOrchestrator:

    def __init__(
        self,
        store: RelationStore,
        trello: TrelloClient,
        resolver: DeliverableResolver,
        reconciler: CheckitemReconciler,
    ) -> None:
        self._store = store
        self._trello = trello
        self._resolver = resolver
        self._reconciler = reconciler

    @classmethod
    def build(
        cls,
        store: RelationStore,
        trello: TrelloClient,
        source: DeliverableSource,
        settings: SyncSettings,
    ) -> "SyncOrchestrator":
        return cls(
            store=store,
            trello=trello,
            resolver=DeliverableResolver(store, trello, source, settings),
            reconciler=CheckitemReconciler(store, trello, settings.controller_url),
        )

    @classmethod
    def from_config(
        cls,
        database: Database,
        trello: TrelloClient,
        settings: Optional[SyncSettings] = None,
    ) -> "SyncOrchestrator":
        """Wire the engine against the controller tables in ``database``."""
        return cls.build(
            store=RelationStore(database),
            trello=trello,
            source=SqlDeliverableSource(database),
            settings=settings or config.load_sync_settings(),
        )

    # ------------------------------------------------------------------
    # Boards
    # ------------------------------------------------------------------

    async def load_boards(self, tax_season_id: str) -> BoardSnapshots:
        """Snapshot every board recorded for the season.

        Categories with no board relation map to ``None``.  Errors propagate:
        without boards there is nothing to sync against.
        """
        async def _load(board_type: BoardType) -> Optional[BoardSnapshot]:
            board_id = await self._store.find_board(tax_season_id, board_type)
            if board_id is None:
                logger.info(
                    "No %s board recorded for tax season %s", board_type.value, tax_season_id,
                )
                return None
            return await load_board_snapshot(self._trello, board_id)

        snapshots = await asyncio.gather(*[_load(bt) for bt in BOARD_LOAD_ORDER])
        return dict(zip(BOARD_LOAD_ORDER, snapshots))

    # ------------------------------------------------------------------
    # Batch sync
    # ------------------------------------------------------------------

    async def sync_deliverables(
        self,
        deliverable_ids: Sequence[str],
        tax_season_id: str,
    ) -> SyncReport:
        record_sync_run()
        # Same id twice would race itself on the relation store
        ids: List[str] = list(dict.fromkeys(deliverable_ids))
        if not ids:
            return SyncReport()

        boards = await self.load_boards(tax_season_id)

        resolved = await asyncio.gather(
            *[self._resolver.resolve(di, tax_season_id, boards) for di in ids],
            return_exceptions=True,
        )

        results: Dict[str, DeliverableResult] = {}
        contexts: List[DeliverableContext] = []
        for deliverable_id, outcome in zip(ids, resolved):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                results[deliverable_id] = _failure(deliverable_id, SyncStage.RESOLVE, outcome)
            else:
                contexts.append(outcome)

        reconciled = await asyncio.gather(
            *[self._reconciler.reconcile(ctx) for ctx in contexts],
            return_exceptions=True,
        )
        for ctx, outcome in zip(contexts, reconciled):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                failed = _failure(ctx.deliverable_id, SyncStage.RECONCILE, outcome)
                failed.card_id = ctx.card_id
                results[ctx.deliverable_id] = failed
            else:
                results[ctx.deliverable_id] = DeliverableResult(
                    deliverable_id=ctx.deliverable_id,
                    status=outcome.status,
                    card_id=ctx.card_id,
                    checkitem_id=outcome.checkitem_id,
                )

        report = SyncReport(
            num_updated_deliverables=len(contexts),
            results=[results[di] for di in ids],
        )
        logger.info(
            "Synced %d deliverables for tax season %s: %d resolved, %d failed",
            len(ids), tax_season_id, report.num_updated_deliverables, len(report.failed),
        )
        return report

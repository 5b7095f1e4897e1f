"""
Trello Sync — Relation store.

Durable mapping from (controller object, tax season, relation type, board
category) to a Trello object id, on top of the ``trello_relations`` table.

Archived rows are history: every lookup filters ``archived IS NULL`` and
nothing is ever deleted.  The store is the concurrency control point for the
whole engine, so ``insert`` refuses to create a second unarchived row for the
same key instead of overwriting it.

Usage::

    store = RelationStore(get_database())
    card_id = await store.find(client_id, RelationType.CLIENT, BoardType.TAX_RETURN, season_id)
    await store.insert(client_id, new_card_id, season_id, RelationType.CLIENT, BoardType.TAX_RETURN)
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from trello_sync.core.errors import ConflictError, StoreError
from trello_sync.database import Database, TrelloRelation, utcnow
from trello_sync.domain.enums import BoardType, RelationType

logger = logging.getLogger(__name__)


def _active(controller_id: str, relation_type: RelationType, board_type: BoardType):
    return (
        TrelloRelation.controller_id == controller_id,
        TrelloRelation.type == relation_type.value,
        TrelloRelation.board_type == board_type.value,
        TrelloRelation.archived.is_(None),
    )


def _new_relation(
    controller_id: str,
    trello_id: str,
    tax_season_id: str,
    relation_type: RelationType,
    board_type: BoardType,
) -> TrelloRelation:
    return TrelloRelation(
        controller_id=controller_id,
        trello_id=trello_id,
        tax_season_id=tax_season_id,
        type=relation_type.value,
        board_type=board_type.value,
    )


def _commit(db: Session, operation: str, controller_id: str, relation_type: RelationType) -> None:
    """Commit, turning a unique-index violation into ``ConflictError``."""
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(
            f"concurrent {relation_type.value} relation for {controller_id}: {exc.orig}",
            operation=operation,
        ) from exc


class RelationStore:
    """Async facade over ``trello_relations``; blocking work runs in a thread."""

    def __init__(self, database: Database) -> None:
        self._db = database

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def find(
        self,
        controller_id: str,
        relation_type: RelationType,
        board_type: BoardType,
        tax_season_id: str,
    ) -> Optional[str]:
        """Trello id of the unarchived relation for the key, or ``None``."""
        def _find(db: Session) -> Optional[str]:
            stmt = (
                select(TrelloRelation.trello_id)
                .where(
                    *_active(controller_id, relation_type, board_type),
                    TrelloRelation.tax_season_id == tax_season_id,
                )
                .order_by(TrelloRelation.id.desc())
                .limit(1)
            )
            return db.execute(stmt).scalar_one_or_none()

        return await self._call("find", _find)

    async def find_board(self, tax_season_id: str, board_type: BoardType) -> Optional[str]:
        """Trello board id recorded for a tax season and board category.

        Board relations are keyed by the tax season id itself.
        """
        def _find_board(db: Session) -> Optional[str]:
            stmt = (
                select(TrelloRelation.trello_id)
                .where(*_active(tax_season_id, RelationType.BOARD, board_type))
                .order_by(TrelloRelation.id.desc())
                .limit(1)
            )
            return db.execute(stmt).scalar_one_or_none()

        return await self._call("find_board", _find_board)

    async def owner_of(
        self,
        trello_id: str,
        relation_type: RelationType,
        board_type: BoardType,
        tax_season_id: str,
    ) -> Optional[str]:
        """Controller id whose unarchived relation points at ``trello_id``."""
        def _owner_of(db: Session) -> Optional[str]:
            stmt = (
                select(TrelloRelation.controller_id)
                .where(
                    TrelloRelation.trello_id == trello_id,
                    TrelloRelation.type == relation_type.value,
                    TrelloRelation.board_type == board_type.value,
                    TrelloRelation.tax_season_id == tax_season_id,
                    TrelloRelation.archived.is_(None),
                )
                .limit(1)
            )
            return db.execute(stmt).scalar_one_or_none()

        return await self._call("owner_of", _owner_of)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(
        self,
        controller_id: str,
        trello_id: str,
        tax_season_id: str,
        relation_type: RelationType,
        board_type: BoardType,
    ) -> None:
        """Create an unarchived relation.

        Raises
        ------
        ConflictError
            An unarchived relation already exists for the key; archive it
            first or use ``update``.
        """
        def _insert(db: Session) -> None:
            existing = db.execute(
                select(TrelloRelation.id).where(
                    *_active(controller_id, relation_type, board_type),
                    TrelloRelation.tax_season_id == tax_season_id,
                )
            ).first()
            if existing is not None:
                raise ConflictError(
                    f"{relation_type.value} relation for {controller_id} "
                    f"({board_type.value}, season {tax_season_id}) already exists",
                    operation="insert",
                )
            db.add(_new_relation(controller_id, trello_id, tax_season_id, relation_type, board_type))
            _commit(db, "insert", controller_id, relation_type)

        await self._call("insert", _insert)
        logger.debug(
            "Inserted %s relation %s -> %s (%s)",
            relation_type.value, controller_id, trello_id, board_type.value,
        )

    async def replace(
        self,
        controller_id: str,
        trello_id: str,
        tax_season_id: str,
        relation_type: RelationType,
        board_type: BoardType,
    ) -> int:
        """Archive the unarchived relation for the key and insert its successor.

        Both writes share one transaction: if the insert fails the archive is
        rolled back and the old relation stays active.  Returns the number
        of rows archived.
        """
        def _replace(db: Session) -> int:
            result = db.execute(
                update(TrelloRelation)
                .where(
                    *_active(controller_id, relation_type, board_type),
                    TrelloRelation.tax_season_id == tax_season_id,
                )
                .values(archived=utcnow())
                .execution_options(synchronize_session=False)
            )
            db.add(_new_relation(controller_id, trello_id, tax_season_id, relation_type, board_type))
            _commit(db, "replace", controller_id, relation_type)
            return result.rowcount or 0

        archived = await self._call("replace", _replace)
        logger.debug(
            "Replaced %s relation %s -> %s (%s), %d archived",
            relation_type.value, controller_id, trello_id, board_type.value, archived,
        )
        return archived

    async def update(
        self,
        controller_id: str,
        trello_id: str,
        tax_season_id: str,
        relation_type: Optional[RelationType] = None,
        board_type: Optional[BoardType] = None,
    ) -> int:
        """Point the unarchived relation(s) for ``controller_id`` at ``trello_id``.

        ``relation_type`` / ``board_type`` narrow the match; returns the
        number of rows rewritten.
        """
        def _update(db: Session) -> int:
            conditions = [
                TrelloRelation.controller_id == controller_id,
                TrelloRelation.tax_season_id == tax_season_id,
                TrelloRelation.archived.is_(None),
            ]
            if relation_type is not None:
                conditions.append(TrelloRelation.type == relation_type.value)
            if board_type is not None:
                conditions.append(TrelloRelation.board_type == board_type.value)
            result = db.execute(
                update(TrelloRelation)
                .where(*conditions)
                .values(trello_id=trello_id)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return result.rowcount or 0

        return await self._call("update", _update)

    async def archive(
        self,
        controller_id: str,
        tax_season_id: str,
        relation_type: RelationType,
        board_type: BoardType,
    ) -> int:
        """Stamp ``archived`` on the unarchived relation for the key."""
        def _archive(db: Session) -> int:
            result = db.execute(
                update(TrelloRelation)
                .where(
                    *_active(controller_id, relation_type, board_type),
                    TrelloRelation.tax_season_id == tax_season_id,
                )
                .values(archived=utcnow())
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return result.rowcount or 0

        return await self._call("archive", _archive)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _call(self, operation: str, fn):
        try:
            return await self._db.run(fn)
        except ConflictError:
            raise
        except SQLAlchemyError as exc:
            logger.error("RelationStore.%s failed: %s", operation, exc)
            raise StoreError(str(exc), operation=operation) from exc

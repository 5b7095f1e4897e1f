"""
trello_sync.sync.resolver — Work out where a deliverable belongs on Trello.

For one deliverable the resolver decides:

  • the board category (tax return vs. financial statements)
  • the checklist the deliverable's item lives in
  • the checklist item already recorded for it, if any
  • the card it must live on — a split card for its entity, else the
    client's card, else a freshly created client card

Board snapshots are passed in per run and never mutated here.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Any, Dict, Mapping, Optional, Tuple

from trello_sync.core.constants import CARD_KEEP_FROM_SOURCE
from trello_sync.core.errors import BoardItemMissing, BoardMissing, ConflictError, NotFound
from trello_sync.core.utils import client_card_description, client_card_name
from trello_sync.domain.enums import BoardType, RelationType
from trello_sync.domain.models import (
    BoardSnapshot,
    Deliverable,
    DeliverableContext,
    SyncSettings,
)
from trello_sync.metrics import increment_cards_created
from trello_sync.sync.deliverables import DeliverableSource
from trello_sync.sync.relation_store import RelationStore
from trello_sync.trello.boards import find_template_card
from trello_sync.trello.client import TrelloClient

logger = logging.getLogger(__name__)

BoardSnapshots = Mapping[BoardType, Optional[BoardSnapshot]]


class DeliverableResolver:
    """Builds a ``DeliverableContext`` for one deliverable at a time.

    Safe to call concurrently for many deliverables.  Client card creation
    is serialized per (client, board category, season) so a client with
    several entities in one batch gets a single card.
    """

    def __init__(
        self,
        store: RelationStore,
        trello: TrelloClient,
        source: DeliverableSource,
        settings: SyncSettings,
    ) -> None:
        self._store = store
        self._trello = trello
        self._source = source
        self._settings = settings
        # (client id, board type, season) -> lock; entries vanish once unused
        self._card_locks: weakref.WeakValueDictionary[Tuple[str, BoardType, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    async def resolve(
        self,
        deliverable_id: str,
        tax_season_id: str,
        boards: BoardSnapshots,
    ) -> DeliverableContext:
        deliverable = await self._source.get_deliverable(deliverable_id, tax_season_id)
        if deliverable is None:
            raise NotFound(
                f"No deliverable found for id {deliverable_id} in tax season {tax_season_id}",
                operation="get_deliverable",
            )

        board_type = BoardType.for_deliverable_type(deliverable.type_name)
        board = boards.get(board_type)
        if board is None:
            raise BoardMissing(
                f"No {board_type.value} board recorded for tax season {tax_season_id}",
                operation="find_board",
            )

        checklist_name = self._settings.checklist_name(board_type)
        checkitem_id = await self._store.find(
            deliverable.id, RelationType.DELIVERABLE, board_type, tax_season_id,
        )
        card_id = await self._resolve_card_id(deliverable, board_type, board)

        return DeliverableContext(
            deliverable=deliverable,
            board_type=board_type,
            checklist_name=checklist_name,
            card_id=card_id,
            checkitem_id=checkitem_id,
        )

    # ------------------------------------------------------------------
    # Card lookup
    # ------------------------------------------------------------------

    async def _resolve_card_id(
        self,
        deliverable: Deliverable,
        board_type: BoardType,
        board: BoardSnapshot,
    ) -> str:
        season = deliverable.tax_season_id
        entity_id = deliverable.entity.id

        # An entity split out onto its own card wins over the client card
        card_id = await self._store.find(entity_id, RelationType.SPLIT_CARD, board_type, season)
        if card_id:
            return card_id

        client_id = deliverable.client.id
        logger.debug(
            "No split card for entity %s, checking the client card for %s",
            entity_id, client_id,
        )
        card_id = await self._store.find(client_id, RelationType.CLIENT, board_type, season)
        if card_id:
            return card_id

        # One card per client: entities of the same client queue up here and
        # re-check the relation once the first creator has recorded its card
        async with self._card_lock(client_id, board_type, season):
            card_id = await self._store.find(client_id, RelationType.CLIENT, board_type, season)
            if card_id:
                return card_id
            return await self.create_client_card(deliverable, board_type, board)

    def _card_lock(self, client_id: str, board_type: BoardType, season: str) -> asyncio.Lock:
        key = (client_id, board_type, season)
        lock = self._card_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._card_locks[key] = lock
        return lock

    async def create_client_card(
        self,
        deliverable: Deliverable,
        board_type: BoardType,
        board: BoardSnapshot,
    ) -> str:
        """Create the client's card from the reference template and record it.

        Returns the id of the card the client relation points at.  When a
        concurrent resolution recorded a card first, its id is returned and
        the card created here is left unreferenced.
        """
        client = deliverable.client
        season = deliverable.tax_season_id
        card_data = await self._build_card_data(deliverable, board_type, board)

        logger.info("Creating %s card for client %s", board_type.value, client.id)
        new_card = await self._trello.create_card(card_data)
        increment_cards_created()

        try:
            await self._store.insert(
                client.id, new_card["id"], season, RelationType.CLIENT, board_type,
            )
        except ConflictError:
            winner = await self._store.find(client.id, RelationType.CLIENT, board_type, season)
            if not winner:
                raise
            logger.warning(
                "Client %s already has card %s; new card %s is unreferenced",
                client.id, winner, new_card["id"],
            )
            return winner
        return new_card["id"]

    async def _build_card_data(
        self,
        deliverable: Deliverable,
        board_type: BoardType,
        board: BoardSnapshot,
    ) -> Dict[str, Any]:
        settings = self._settings
        client = deliverable.client
        options = settings.board_options(board_type)

        target_list = board.find_list_containing(options.list_to_create_cards_in)
        if target_list is None:
            raise BoardItemMissing(
                f"no list containing {options.list_to_create_cards_in!r} on board {board.id}",
                operation="create_client_card",
            )

        template = await find_template_card(
            self._trello,
            settings.reference_board_id,
            settings.template_list_name,
            settings.template_card_name,
        )

        data: Dict[str, Any] = {
            "desc": client_card_description(client.id, settings.controller_url),
            "idCardSource": template["id"],
            "idList": target_list.id,
            "keepFromSource": CARD_KEEP_FROM_SOURCE,
            "name": client_card_name(client),
        }

        preparer = deliverable.preparer
        if preparer is not None:
            label = board.find_label(preparer.display_name)
            if label is None:
                raise BoardItemMissing(
                    f"no label {preparer.display_name!r} on board {board.id}",
                    operation="create_client_card",
                )
            data["idLabels"] = label.id
        else:
            logger.warning(
                "Client %s has no preparer for season %s; card gets no label",
                client.id, deliverable.tax_season_id,
            )

        member_id = settings.member_for_rank(client.rank)
        if member_id:
            data["idMembers"] = member_id
        return data

"""
trello_sync.domain.enums — All enumerations used across the service.

Keep this module import-clean (stdlib only).
"""

from enum import Enum


# ---------------------------------------------------------------------------
# Relation types (trello_relations.type)
# ---------------------------------------------------------------------------

class RelationType(str, Enum):
    """What kind of Trello object a relation points at."""
    BOARD       = "board"         # controller_id is the tax season id
    CLIENT      = "client"        # the client's main card
    SPLIT_CARD  = "split_card"    # an entity split out onto its own card
    DELIVERABLE = "deliverable"   # a checklist item on a card


# ---------------------------------------------------------------------------
# Board categories (trello_relations.board_type)
# ---------------------------------------------------------------------------

class BoardType(str, Enum):
    """Which board a deliverable is tracked on."""
    TAX_RETURN           = "tax_return"
    FINANCIAL_STATEMENTS = "financial_statements"

    @classmethod
    def for_deliverable_type(cls, type_name: str) -> "BoardType":
        """Route on the deliverable type display name.

        Only an exact ``"Tax Return"`` goes to the tax-return board; every
        other type lands on the financial-statements board.
        """
        if type_name == "Tax Return":
            return cls.TAX_RETURN
        return cls.FINANCIAL_STATEMENTS


# ---------------------------------------------------------------------------
# Per-deliverable sync outcome
# ---------------------------------------------------------------------------

class SyncStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    FAILED  = "failed"


class SyncStage(str, Enum):
    """Where in the pipeline a deliverable stopped."""
    RESOLVE   = "resolve"
    RECONCILE = "reconcile"

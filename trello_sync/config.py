"""
Centralized configuration for Trello Sync.
All settings come from environment variables for 12-factor deployment.
"""

import os
from typing import List, Tuple

from trello_sync.core import constants
from trello_sync.domain.enums import BoardType
from trello_sync.domain.models import BoardOptions, SyncSettings


def _env_list(name: str, default: str = "") -> List[str]:
    return [
        s.strip()
        for s in os.environ.get(name, default).split(",")
        if s.strip()
    ]


def _parse_rank_members(raw: str) -> Tuple[Tuple[str, str], ...]:
    """Parse ``"rank:memberId,rank:memberId"`` keeping the declared order."""
    pairs = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        rank, sep, member_id = chunk.partition(":")
        if not sep or not member_id.strip():
            raise ValueError(f"RANK_MEMBERS entry {chunk!r} is not rank:memberId")
        pairs.append((rank.strip(), member_id.strip()))
    return tuple(pairs)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///trello_sync.db")

# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------
# Internal application the card and checklist links point at
CONTROLLER_URL = os.environ.get("CONTROLLER_URL", "http://localhost:3000").rstrip("/")

# ---------------------------------------------------------------------------
# Trello
# ---------------------------------------------------------------------------
TRELLO_API_URL = os.environ.get("TRELLO_API_URL", constants.TRELLO_API_URL).rstrip("/")
TRELLO_API_KEY = os.environ.get("TRELLO_API_KEY", "")
TRELLO_API_TOKEN = os.environ.get("TRELLO_API_TOKEN", "")
TRELLO_TIMEOUT_SECONDS = float(
    os.environ.get("TRELLO_TIMEOUT_SECONDS", str(constants.TRELLO_TIMEOUT_SECONDS))
)
TRELLO_MAX_RETRIES = int(os.environ.get("TRELLO_MAX_RETRIES", str(constants.TRELLO_MAX_RETRIES)))

# ---------------------------------------------------------------------------
# Board conventions
# ---------------------------------------------------------------------------
REFERENCE_BOARD_ID = os.environ.get("REFERENCE_BOARD_ID", constants.REFERENCE_BOARD_ID)
TEMPLATE_LIST_NAME = os.environ.get("TEMPLATE_LIST_NAME", constants.TEMPLATE_LIST_NAME)
TEMPLATE_CARD_NAME = os.environ.get("TEMPLATE_CARD_NAME", constants.TEMPLATE_CARD_NAME)

TAX_RETURN_CHECKLIST_NAME = os.environ.get(
    "TAX_RETURN_CHECKLIST_NAME", constants.TAX_RETURN_CHECKLIST_NAME
)
TAX_RETURN_CARD_LIST = os.environ.get("TAX_RETURN_CARD_LIST", constants.TAX_RETURN_CARD_LIST)
FINANCIAL_STATEMENTS_CHECKLIST_NAME = os.environ.get(
    "FINANCIAL_STATEMENTS_CHECKLIST_NAME", constants.FINANCIAL_STATEMENTS_CHECKLIST_NAME
)
FINANCIAL_STATEMENTS_CARD_LIST = os.environ.get(
    "FINANCIAL_STATEMENTS_CARD_LIST", constants.FINANCIAL_STATEMENTS_CARD_LIST
)

# Client rank -> Trello member id, in order; the last entry is the default.
RANK_MEMBERS = _parse_rank_members(os.environ.get("RANK_MEMBERS", ""))

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.environ.get("LOG_FORMAT", "%(asctime)s [%(levelname)s] %(name)s: %(message)s")
# Third-party loggers held at WARNING
QUIET_LOGGERS = _env_list("QUIET_LOGGERS", "httpx,httpcore,sqlalchemy.engine,uvicorn.access")

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------
PORT = int(os.environ.get("PORT", "8002"))
# Whole-batch timeout for /addDeliverablesToTrello (0 = no timeout)
SYNC_TIMEOUT_SECONDS = float(os.environ.get("SYNC_TIMEOUT_SECONDS", "0"))
CORS_ORIGINS = _env_list("CORS_ORIGINS", "*")


def load_sync_settings() -> SyncSettings:
    """Build the immutable settings structure handed to the resolver."""
    return SyncSettings(
        controller_url=CONTROLLER_URL,
        reference_board_id=REFERENCE_BOARD_ID,
        template_list_name=TEMPLATE_LIST_NAME,
        template_card_name=TEMPLATE_CARD_NAME,
        boards={
            BoardType.TAX_RETURN: BoardOptions(
                primary_checklist_name=TAX_RETURN_CHECKLIST_NAME,
                list_to_create_cards_in=TAX_RETURN_CARD_LIST,
            ),
            BoardType.FINANCIAL_STATEMENTS: BoardOptions(
                primary_checklist_name=FINANCIAL_STATEMENTS_CHECKLIST_NAME,
                list_to_create_cards_in=FINANCIAL_STATEMENTS_CARD_LIST,
            ),
        },
        rank_members=RANK_MEMBERS,
    )

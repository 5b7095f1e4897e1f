"""
Trello Sync — System-wide constants.

Every literal the sync engine depends on lives here. Values that differ per
deployment are read from the environment in ``trello_sync.config`` and only
default to what is defined below.
"""

# ---------------------------------------------------------------------------
# Trello API
# ---------------------------------------------------------------------------

TRELLO_API_URL: str = "https://api.trello.com/1"
TRELLO_USER_AGENT: str = "trello-sync/1.0"

# Request timeout and retry schedule for the Trello client
TRELLO_TIMEOUT_SECONDS: float = 15.0
TRELLO_MAX_RETRIES: int = 4
TRELLO_RETRY_BACKOFF_BASE: float = 2.0   # 2 s, 4 s, 8 s, 16 s

# Card attributes copied from the template card on creation
CARD_KEEP_FROM_SOURCE: str = "checklists"

# ---------------------------------------------------------------------------
# Board conventions ("Tax Year" board options)
# ---------------------------------------------------------------------------

# Reference board holding the card templates
REFERENCE_BOARD_ID: str = "568d13d6f36a676271a47aaa"
TEMPLATE_LIST_NAME: str = "Templates"
TEMPLATE_CARD_NAME: str = "Tax Year"

TAX_RETURN_CHECKLIST_NAME: str = "Returns to File"
TAX_RETURN_CARD_LIST: str = "Prep"

FINANCIAL_STATEMENTS_CHECKLIST_NAME: str = "Financial Statements to Prepare"
FINANCIAL_STATEMENTS_CARD_LIST: str = "Prep"

# ---------------------------------------------------------------------------
# Markdown links written onto cards and checklist items
# ---------------------------------------------------------------------------

CHECKITEM_LINK_TEXT: str = ":newlink:"
CARD_LINK_TEXT: str = ":newLink:"
VIEW_CLIENT_CAPTION: str = "View Client"
SEND_RETURNS_CAPTION: str = "Who to Send Returns to"

# ---------------------------------------------------------------------------
# Observability
# ---------------------------------------------------------------------------

# Rolling window for the errors_last_hour counter
ERROR_WINDOW_SECONDS: float = 3600.0

"""
trello_sync — keeps controller deliverables in step with their Trello
checklist items.
"""

__version__ = "1.0.0"

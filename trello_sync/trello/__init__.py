"""
trello_sync.trello — Trello REST client and board snapshot helpers.
"""

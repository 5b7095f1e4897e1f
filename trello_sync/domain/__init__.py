"""
trello_sync.domain — Canonical data models and enumerations.

This package defines the source-of-truth types shared across every layer
of the sync service. Nothing in here should import from other trello_sync
sub-packages (only stdlib).
"""

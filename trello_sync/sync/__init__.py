"""
trello_sync.sync — The reconciliation engine.

Import surface::

    from trello_sync.sync.orchestrator import SyncOrchestrator
    from trello_sync.sync.relation_store import RelationStore
    from trello_sync.sync.deliverables import SqlDeliverableSource
"""

"""Safety artifact store.

The store owns one immutable ``StoreState`` snapshot at a time. Mutations
build a new snapshot, record a reversible action on the undo log, and
persist the result through a ``SnapshotPersister``.
"""

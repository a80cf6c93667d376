"""Store error taxonomy.

Built-in bases keep callers that catch ``KeyError``/``ValueError`` working.
"""


class ArtifactNotFoundError(KeyError):
    """An operation referenced an id that is not in the addressed collection."""

    def __init__(self, kind: str, artifact_id: str) -> None:
        self.kind = kind
        self.artifact_id = artifact_id
        super().__init__(f"{kind} {artifact_id} not found.")

    def __str__(self) -> str:
        return str(self.args[0])


class SnapshotFormatError(ValueError):
    """A persisted snapshot could not be decoded."""


class PersistenceError(RuntimeError):
    """The storage medium failed to read or write a snapshot."""

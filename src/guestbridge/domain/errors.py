"""Error taxonomy for the reconciliation core.

Batch operations catch these per unit of work and report them as strings
in their summary's ``errors`` list; only ValidationError is meant to
reject a whole batch before any mutation.
"""


class ReconciliationError(Exception):
    """Base class for reconciliation failures."""


class ValidationError(ReconciliationError):
    """Malformed input file/row or missing required field."""


class NotFoundError(ReconciliationError):
    """A review/execute call referenced an id unknown to the store."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConflictError(ReconciliationError):
    """Ambiguous identity or merge target collision; needs a human decision."""


class CollaboratorError(ReconciliationError):
    """Mail or classification collaborator unavailable or unparsable."""


class FatalError(ReconciliationError):
    """Canonical store connection lost mid-transaction."""

class FinancialsError(Exception):
    """Base class for errors raised by the phase financials core."""


class NotFound(FinancialsError):
    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(FinancialsError):
    pass


class AggregationFailure(FinancialsError):
    """A storage read or write failed while summing costs."""

    def __init__(self, what: str, phase_id: int | None = None):
        super().__init__(f"aggregation failed: {what}" + (f" (phase {phase_id})" if phase_id is not None else ""))
        self.what = what
        self.phase_id = phase_id


class ConcurrencyConflict(FinancialsError):
    """The row changed between read and write (version mismatch)."""

"""
core/exceptions.py
------------------
Error taxonomy shared by the store gateway and the reconciliation engine.

  StoreError          any failure reported by the persistent store
    NotFound          target id does not exist (skip, not fatal)
    Conflict          uniqueness violated or optimistic condition failed
    StoreUnavailable  transient infrastructure failure (aborts one batch)
      ReconciliationAborted  raised by a reconciler, keeps the partial counts
  InvariantViolation  data that upstream validation should have prevented
"""


class StoreError(Exception):
    """Base class for persistent store failures."""


class NotFound(StoreError):
    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class Conflict(StoreError):
    pass


class StoreUnavailable(StoreError):
    pass


class InvariantViolation(Exception):
    def __init__(self, entity: str, entity_id: str, reason: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"{entity} '{entity_id}': {reason}")


class ReconciliationAborted(StoreUnavailable):
    """StoreUnavailable that stopped a reconciler mid-run; carries its partial result."""

    def __init__(self, job: str, result, cause: StoreUnavailable) -> None:
        self.job = job
        self.result = result
        super().__init__(f"{job} aborted after {result.scanned} scanned: {cause}")

"""
Typed errors raised by the inventory engine.

Every error carries a machine-readable ``code`` and the orchestrator ``step``
at which it was raised (``None`` outside an orchestrated operation), so the
HTTP layer can report both without parsing messages.

    InventoryError
    +-- ValidationError        invalid quantity, cost, expiry, reason, ...
    +-- NotAuthenticated       no acting user
    +-- InsufficientStock      a change would drive a quantity negative
    +-- NotFound               unknown variant / warehouse / batch
    +-- ImmutableEntry         attempt to modify or delete a log entry

Orchestrated operations run in a single transaction, so there is no
partial-write error: a failure rolls the whole operation back.
"""

from typing import Optional


class InventoryError(Exception):
    code = "INVENTORY_ERROR"

    def __init__(self, message: str, *, step: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.step = step

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, "step": self.step}


class ValidationError(InventoryError):
    code = "VALIDATION_ERROR"


class NotAuthenticated(InventoryError):
    code = "NOT_AUTHENTICATED"

    def __init__(self, message: str = "Not authenticated", *, step: Optional[str] = None):
        super().__init__(message, step=step)


class InsufficientStock(InventoryError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, available: int, requested: int, *, step: Optional[str] = None):
        super().__init__(
            f"Insufficient stock: {available} available, {requested} requested", step=step
        )
        self.available = available
        self.requested = requested


class NotFound(InventoryError):
    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id, *, step: Optional[str] = None):
        super().__init__(f"{resource} {resource_id} not found", step=step)
        self.resource = resource
        self.resource_id = resource_id


class ImmutableEntry(InventoryError):
    code = "IMMUTABLE_ENTRY"

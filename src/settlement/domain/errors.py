"""Domain-specific exception classes for the settlement engine.

Every client-visible failure of an entry point is one of these.  The HTTP
layer maps them onto status codes; nothing else needs to inspect messages.
"""

from settlement.domain.types import CampaignStatus


class SettlementError(Exception):
    """Base class for all domain errors in the settlement engine."""

    retryable: bool = False


class UnauthorizedError(SettlementError):
    """Raised when the actor lacks administrator capability."""

    def __init__(self, actor_id: str | None, action: str) -> None:
        self.actor_id = actor_id
        self.action = action
        super().__init__(f"Actor '{actor_id}' is not allowed to {action}")


class InvalidInputError(SettlementError):
    """Raised when a required field is missing or malformed."""

    def __init__(self, field: str, detail: str) -> None:
        self.field = field
        self.detail = detail
        super().__init__(f"Invalid {field}: {detail}")


class NotFoundError(SettlementError):
    """Raised when a referenced entity does not exist.

    Attributes:
        entity: The kind of entity (``"campaign"``, ``"user"``, ...).
        entity_id: The identifier that was looked up.
    """

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} '{entity_id}' not found")


class InvalidStateError(SettlementError):
    """Raised when a campaign is not in the status an action requires.

    This is also what a repeated approve/reject/finish observes, so callers
    can report it as "already processed".

    Attributes:
        current_status: The status the campaign was in.
        action: The action that was refused.
    """

    def __init__(self, current_status: CampaignStatus, action: str) -> None:
        self.current_status = current_status
        self.action = action
        super().__init__(f"Cannot {action} a campaign in status '{current_status}'")


class MetricsProviderError(SettlementError):
    """Raised by a metrics provider when a snapshot cannot be fetched."""

    retryable = True

    def __init__(self, submission_id: str, detail: str) -> None:
        self.submission_id = submission_id
        self.detail = detail
        super().__init__(f"Metrics fetch failed for submission '{submission_id}': {detail}")


class StorageFailureError(SettlementError):
    """Raised when a unit of work fails and has been rolled back.

    No partial state persists, so the operation is safe to retry.
    """

    retryable = True

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Storage failure during {operation}: {cause}")

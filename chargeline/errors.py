"""
Exceptions raised by the charging services.

Messages are written for staff and customers and can be surfaced as-is.
"""


class ChargelineError(Exception):
    """Base class for all chargeline errors."""


class ValidationError(ChargelineError):
    """Missing or malformed input."""


class NotFoundError(ChargelineError):
    """A referenced station, session, reservation or sale does not exist."""

    def __init__(self, entity: str, identifier):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} '{identifier}' not found")


class InvalidTransitionError(ChargelineError):
    """
    An operation was attempted on a record that is not in the required state.

    ``current_status`` carries the state the record is actually in so the
    caller can refresh and decide whether to retry.
    """

    def __init__(self, entity: str, identifier, current_status: str, attempted: str):
        self.entity = entity
        self.identifier = identifier
        self.current_status = current_status
        self.attempted = attempted
        super().__init__(
            f"Cannot {attempted} {entity.lower()} '{identifier}': "
            f"it is currently {current_status}"
        )


class NotificationDeliveryFailure(ChargelineError):
    """A notification could not be delivered. Never undoes a transition."""

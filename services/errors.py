class RentalError(Exception):
    """Base class for errors raised by the booking core."""


class ValidationError(RentalError):
    """Malformed input: inverted window, unknown resource type, bad rating."""


class NotFoundError(RentalError):
    pass


class ConflictError(RentalError):
    """A blocking booking overlaps the requested window on this resource.

    Retrying with the same resource and window cannot succeed; pick another
    resource or window.
    """

    def __init__(self, resource_id, window, conflicting_booking_id=None, message=None):
        self.resource_id = resource_id
        self.window = window
        self.conflicting_booking_id = conflicting_booking_id
        super().__init__(message or f"Resource {resource_id} is not available for {window}")


class RejectedTransitionError(RentalError):
    def __init__(self, status, event, reason=None, booking_id=None):
        self.status = status
        self.event = event
        self.booking_id = booking_id
        message = f"Cannot apply '{event}' to a booking in status '{status}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SerializationTimeoutError(RentalError):
    """Waiting for a per-resource lock took too long. Safe to retry with backoff."""

    def __init__(self, resource_ids, timeout, window=None):
        self.resource_ids = list(resource_ids)
        self.timeout = timeout
        self.window = window
        super().__init__(f"Timed out after {timeout}s waiting for resources {self.resource_ids}")


class AggregationError(RentalError):
    def __init__(self, resource_id, cause=None):
        self.resource_id = resource_id
        self.cause = cause
        super().__init__(f"Rating recompute failed for resource {resource_id}: {cause}")

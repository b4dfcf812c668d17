"""Error taxonomy for the audit shipping pipeline."""


class AuditShipperError(Exception):
    """Base class for all audit shipper errors."""


class InvalidEvent(AuditShipperError, ValueError):
    """A recorded event is missing a required field. Never queued, never retried."""


class DeliveryFailure(AuditShipperError):
    """
    The remote sink rejected a batch or could not be reached.

    The batch has already been put back at the head of the queue and
    persisted when this is raised.
    """

    def __init__(self, message: str, batch_size: int = 0) -> None:
        super().__init__(message)
        self.batch_size = batch_size


class DurabilityCorruption(AuditShipperError):
    """A durable snapshot exists but cannot be decoded."""


class QueryFailure(AuditShipperError):
    """The remote sink failed to answer a read query."""

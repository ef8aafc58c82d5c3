"""
Error taxonomy for the inventory service.

Admission-control rejections (crawl already running, crawl recently done)
are not errors and are returned as Admission outcomes instead, see
inventory.services.crawl_status.
"""


class InventoryServiceError(Exception):
    """Base class for all inventory service errors."""


class ProviderUnavailable(InventoryServiceError):
    """
    The catalog provider call failed (network, HTTP status, bad body, quota).

    Recoverable: category jobs are retried by the queue.
    """

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class TriggerFailed(ProviderUnavailable):
    """The inventory-processing trigger could not be delivered."""


class MissingCoordinates(InventoryServiceError):
    """A store search was requested without usable latitude/longitude."""


class MatchingFailed(InventoryServiceError):
    """The matching pipeline could not read the inventory it needs."""


class ReasoningUnavailable(MatchingFailed):
    """The reasoning service could not be reached or returned an error status."""


class ReasoningMalformed(MatchingFailed):
    """The reasoning service answered with content that is not the requested JSON."""

    def __init__(self, message: str, raw_content: str = ""):
        super().__init__(message)
        self.raw_content = raw_content

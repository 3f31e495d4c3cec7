"""
Domain errors for the points ledger.

Every error carries the HTTP status the API layer answers with,
so routers can translate them without a lookup table.
"""


class PointsError(Exception):
    """Base class for ledger, catalog and redemption failures."""

    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFound(PointsError):
    """Unknown student, item, transaction or purchase."""

    status_code = 404


class InsufficientBalance(PointsError):
    status_code = 409

    def __init__(self, available: int, requested: int) -> None:
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient balance: available={available}, "
            f"requested={requested}"
        )


class OutOfStock(PointsError):
    status_code = 409

    def __init__(self, item_id: int) -> None:
        self.item_id = item_id
        super().__init__(f"Item {item_id} is out of stock")


class DuplicateSourceEvent(PointsError):
    """
    The source event was already applied.

    Never surfaced to users: the ledger absorbs it and hands back
    the transaction recorded the first time.
    """

    status_code = 200

    def __init__(self, existing) -> None:
        self.existing = existing
        super().__init__(
            f"Source event {existing.source_kind.value}:"
            f"{existing.source_event_id} already applied"
        )


class Busy(PointsError):
    """A lock could not be acquired in time. Safe to retry."""

    status_code = 503

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Resource {key} is busy, retry later")


class InvalidStatusTransition(PointsError):
    status_code = 400

"""
Helpers shared by the routers.
"""

from fastapi import HTTPException

from points_ledger.errors import Busy, PointsError


def http_error(exc: PointsError) -> HTTPException:
    """Translate a domain error into the HTTP response it maps to."""
    headers = {"Retry-After": "1"} if isinstance(exc, Busy) else None
    return HTTPException(
        status_code=exc.status_code, detail=exc.detail, headers=headers
    )

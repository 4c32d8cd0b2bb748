"""
Pydantic response envelopes for the HTTP API.

Every response carries a ``success`` flag. Read envelopes also carry
``fromCache`` so clients and tests can see whether the cache served them.
"""

from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from ledger_api.models.records import CamelModel


class RecordEnvelope(CamelModel):
    """
    Single-record response.

    Example:
        >>> RecordEnvelope(data={"id": "42"}, from_cache=True).model_dump(by_alias=True)
        {'success': True, 'message': None, 'data': {'id': '42'}, 'fromCache': True}
    """

    success: bool = True
    message: Optional[str] = None
    data: Dict[str, Any] = Field(..., description="Record payload")
    from_cache: bool = Field(False, description="Whether the record was served from cache")


class PageEnvelope(CamelModel):
    """Paginated list response."""

    success: bool = True
    total: int = Field(..., ge=0, description="Records matching the filter")
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)
    data: List[Dict[str, Any]] = Field(default_factory=list)
    from_cache: bool = Field(False, description="Whether the page was served from cache")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "total": 42,
                "page": 1,
                "limit": 10,
                "totalPages": 5,
                "data": [{"id": "0f1e", "name": "Acme", "balance": 100.0}],
                "fromCache": False,
            }
        }
    )


class MessageEnvelope(CamelModel):
    success: bool = True
    message: str


class ErrorResponse(CamelModel):
    """
    Standardized error response structure.

    Attributes:
        success: Always False
        message: Human-readable error message
        errors: Optional field-level details
    """

    success: bool = False
    message: str = Field(..., min_length=1)
    errors: Optional[List[Dict[str, Any]]] = None


class HealthCheckResponse(CamelModel):
    """
    Health check response.

    Used to verify the server is running and report component health.
    """

    status: str = Field(
        ...,
        description="Overall health status (healthy, degraded, unhealthy)",
    )
    version: str = Field(..., description="Server version")
    components: Dict[str, str] = Field(
        ...,
        description="Health status of individual components",
    )

"""
API Response Models
===================

Pydantic models for API responses.

Field names follow the JSON the browser already consumes, so conversion
responses are camelCase while history rows keep the database column names.
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional


class PerformanceInfo(BaseModel):
    """Timing block attached to conversion responses."""

    responseTime: int = Field(..., description="Server-side processing time in ms")
    timestamp: str = Field(..., description="ISO 8601 UTC timestamp")


class ConvertOptionsEcho(BaseModel):
    """Options actually applied to a conversion."""

    style: str
    docType: str
    format: str


class ConvertResponse(BaseModel):
    """Response model for POST /api/convert."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "convertedText": "10時、体温37.8℃。頭痛の訴えあり。水分摂取を促した。",
                "options": {"style": "だ・である体", "docType": "記録", "format": "文章形式"},
                "sessionId": "session_1718000000000_k3j9x0a1b",
                "demo": False,
                "performance": {"responseTime": 1834, "timestamp": "2024-06-10T01:23:45.678Z"}
            }
        }
    )

    success: bool = True
    convertedText: str = Field(..., description="Formatted clinical text")
    options: ConvertOptionsEcho
    sessionId: str = Field(..., description="Anonymous session id to send back as X-Session-Id")
    demo: bool = Field(default=False, description="True when canned demo output was returned")
    performance: PerformanceInfo


class HistoryRecord(BaseModel):
    """One stored conversion."""

    id: int
    input_text: str
    output_text: str
    options_style: str
    options_doc_type: str
    options_format: str
    char_limit: int
    response_time: Optional[int] = None
    created_at: str


class HistoryResponse(BaseModel):
    """Response model for GET /api/history."""

    success: bool = True
    records: list[HistoryRecord] = Field(default_factory=list)
    count: int = 0
    authenticated: bool = False
    userId: Optional[int] = None
    sessionId: Optional[str] = None
    message: Optional[str] = None


class MessageResponse(BaseModel):
    """Generic acknowledgement."""

    success: bool = True
    message: str

"""
API Request Models
==================

Pydantic models for API request bodies.

Fields are deliberately loose (optional, any JSON scalar): the conversion
and auth rules live in core.validation so that every rejection carries the
same Japanese message whether it comes from the API or the CLI.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional, Union


CharLimitValue = Optional[Union[int, float, str]]


class ConvertOptionsPayload(BaseModel):
    """Nested options object accepted by POST /api/convert."""

    model_config = ConfigDict(populate_by_name=True)

    style: Optional[str] = Field(default=None, description="ですます体 or だ・である体")
    doc_type: Optional[str] = Field(default=None, alias="docType", description="記録 or 報告書")
    format: Optional[str] = Field(default=None, description="文章形式 or SOAP形式")
    char_limit: CharLimitValue = Field(default=None, alias="charLimit", description="Output character limit")


class ConvertRequest(BaseModel):
    """
    Request model for POST /api/convert.

    Options may be sent flat or nested under ``options``; nested values win.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "text": "10時 体温37.8度 頭痛の訴えあり 水分摂取促す",
                "style": "だ・である体",
                "docType": "記録",
                "format": "文章形式",
                "charLimit": 500
            }
        }
    )

    text: Any = Field(default=None, description="Informal nursing memo")
    style: Optional[str] = Field(default=None)
    doc_type: Optional[str] = Field(default=None, alias="docType")
    format: Optional[str] = Field(default=None)
    char_limit: CharLimitValue = Field(default=None, alias="charLimit")
    options: Optional[ConvertOptionsPayload] = Field(default=None)

    def resolved_options(self) -> tuple[Any, Any, Any, Any]:
        """(style, doc_type, format, char_limit) with nested values taking priority."""
        nested = self.options or ConvertOptionsPayload()
        return (
            nested.style if nested.style is not None else self.style,
            nested.doc_type if nested.doc_type is not None else self.doc_type,
            nested.format if nested.format is not None else self.format,
            nested.char_limit if nested.char_limit is not None else self.char_limit,
        )

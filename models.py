"""
Domain Models for Tap Karte
===========================

This module defines the core data structures used throughout the application.
We use Pydantic for validation and for easy conversion to/from JSON.

Design Principle: These models are "pure" - they have no dependencies on
external services, databases, or frameworks.

The option enums use the Japanese labels as their values because those are
the exact strings the UI sends and the prompt interpolates.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DocumentType(str, Enum):
    """Kind of document to produce."""
    RECORD = "記録"
    REPORT = "報告書"


class OutputFormat(str, Enum):
    """Layout of the produced document."""
    NARRATIVE = "文章形式"
    SOAP = "SOAP形式"


class WritingStyle(str, Enum):
    """Japanese sentence-ending register."""
    POLITE = "ですます体"
    PLAIN = "だ・である体"


class ConversionOptions(BaseModel):
    """Validated formatting options for one conversion."""
    style: WritingStyle = Field(default=WritingStyle.PLAIN, description="Writing style")
    doc_type: DocumentType = Field(default=DocumentType.RECORD, description="Document type")
    format: OutputFormat = Field(default=OutputFormat.NARRATIVE, description="Output format")
    char_limit: int = Field(default=500, ge=1, description="Maximum output characters")

    def to_public_dict(self) -> dict:
        """Options in the camelCase shape the browser uses."""
        return {
            "style": self.style.value,
            "docType": self.doc_type.value,
            "format": self.format.value,
            "charLimit": self.char_limit,
        }


class ConversionResult(BaseModel):
    """
    Output of a single conversion.

    Attributes:
        converted_text: Cleaned, length-limited document text
        options: The options actually applied (after clamping)
        session_id: Anonymous session the record belongs to
        response_time_ms: Wall time of the conversion in milliseconds
        provider: LLM provider that produced the text ("demo" for canned output)
        demo: True when the demo fallback was used instead of a real LLM
    """
    converted_text: str = Field(..., description="Formatted clinical text")
    options: ConversionOptions
    session_id: str = Field(..., description="Session identifier")
    response_time_ms: int = Field(..., description="Processing time in milliseconds")
    timestamp: datetime = Field(default_factory=utc_now)
    provider: str = Field(default="gemini", description="LLM provider used")
    demo: bool = Field(default=False, description="Whether demo output was returned")
    record_id: Optional[int] = Field(default=None, description="Persisted record id, if stored")

    def to_response_dict(self) -> dict:
        """Shape returned by POST /api/convert."""
        return {
            "success": True,
            "convertedText": self.converted_text,
            "options": {
                "style": self.options.style.value,
                "docType": self.options.doc_type.value,
                "format": self.options.format.value,
            },
            "sessionId": self.session_id,
            "demo": self.demo,
            "performance": {
                "responseTime": self.response_time_ms,
                "timestamp": self.timestamp.isoformat() + "Z",
            },
        }


class AuthProvider(str, Enum):
    """How a user signs in."""
    EMAIL = "email"
    GOOGLE = "google"


class User(BaseModel):
    """
    A registered user as stored in the key-value user store.

    Password hashes are stored under a separate key and never live on
    this model.
    """
    id: int
    email: str
    display_name: str
    profile_image: Optional[str] = None
    auth_provider: AuthProvider = AuthProvider.EMAIL
    google_id: Optional[str] = None
    email_verified: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    last_login_at: Optional[datetime] = None

    def public_dict(self, detailed: bool = False) -> dict:
        """Fields safe to return to the browser."""
        data = {
            "id": self.id,
            "email": self.email,
            "display_name": self.display_name,
            "profile_image": self.profile_image,
        }
        if detailed:
            data["email_verified"] = self.email_verified
            data["created_at"] = self.created_at.isoformat()
        return data


class GoogleTokenInfo(BaseModel):
    """Identity fields returned by Google's tokeninfo endpoint."""
    sub: str
    email: str
    name: str
    picture: Optional[str] = None
    email_verified: bool = False


class SecuritySeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ClientInfo(BaseModel):
    """Request origin details stored alongside records and security events."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

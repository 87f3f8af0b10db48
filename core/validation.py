"""
Input Validation
================

Length checks, option enum checks and PII screening for conversion
requests, plus the email/password rules used by registration.

Every failure raises an InputValidationError subclass so the API layer can
map it to a 400 response with a user-facing message.
"""

import logging
import re
from typing import Any, Optional

from config import Settings, get_settings
from core.pii import detected_kinds
from exceptions import (
    EmptyInputError,
    InputTooLongError,
    InvalidEmailError,
    InvalidOptionError,
    PersonalInfoDetectedError,
    WeakPasswordError,
)
from models import ConversionOptions, DocumentType, OutputFormat, WritingStyle


logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8

_ANGLE_BRACKETS = re.compile(r"[<>]")
_JAVASCRIPT_URL = re.compile(r"javascript:", re.IGNORECASE)


def sanitize_text(text: str, max_length: Optional[int] = None) -> str:
    """
    Strip markup-ish characters from user text.

    Trims whitespace, removes angle brackets and ``javascript:`` schemes,
    then truncates to ``max_length`` characters.
    """
    if max_length is None:
        max_length = get_settings().max_input_length
    cleaned = text.strip()
    cleaned = _ANGLE_BRACKETS.sub("", cleaned)
    cleaned = _JAVASCRIPT_URL.sub("", cleaned)
    return cleaned[:max_length]


def clamp_char_limit(value: Any, settings: Optional[Settings] = None) -> int:
    """
    Parse and clamp the requested output character limit.

    Accepts numbers or numeric strings; fractions are truncated. Missing,
    unparsable, non-finite or non-positive values fall back to the default.
    Everything else is clamped into [min, max].
    """
    settings = settings or get_settings()

    try:
        limit = int(float(value))
    except (TypeError, ValueError, OverflowError):
        limit = 0

    if limit <= 0:
        limit = settings.default_char_limit

    return max(settings.min_char_limit, min(limit, settings.max_char_limit))


def _parse_enum(enum_cls, field: str, value: Any):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidOptionError(field, value, [member.value for member in enum_cls])


def parse_options(
    style: Any,
    doc_type: Any,
    output_format: Any,
    char_limit: Any = None,
    settings: Optional[Settings] = None
) -> ConversionOptions:
    """
    Validate raw option values into ConversionOptions.

    Raises:
        InvalidOptionError: naming the first field with an unknown value
    """
    return ConversionOptions(
        style=_parse_enum(WritingStyle, "style", style),
        doc_type=_parse_enum(DocumentType, "docType", doc_type),
        format=_parse_enum(OutputFormat, "format", output_format),
        char_limit=clamp_char_limit(char_limit, settings),
    )


def validate_conversion_input(
    text: Any,
    style: Any,
    doc_type: Any,
    output_format: Any,
    char_limit: Any = None,
    settings: Optional[Settings] = None
) -> tuple[str, ConversionOptions]:
    """
    Validate a conversion request.

    Checks run in order: emptiness, length, personal information, options.

    Returns:
        (sanitized_text, options)

    Raises:
        EmptyInputError, InputTooLongError, PersonalInfoDetectedError,
        InvalidOptionError
    """
    settings = settings or get_settings()

    if not isinstance(text, str) or not text.strip():
        raise EmptyInputError()

    stripped = text.strip()
    if len(stripped) > settings.max_input_length:
        raise InputTooLongError(len(stripped), settings.max_input_length)

    kinds = detected_kinds(stripped)
    if kinds:
        logger.warning(f"Personal information detectors fired: {kinds}")
        raise PersonalInfoDetectedError(kinds)

    options = parse_options(style, doc_type, output_format, char_limit, settings)
    return sanitize_text(stripped, settings.max_input_length), options


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and bool(EMAIL_PATTERN.match(email))


def require_valid_email(email: Any) -> str:
    if not is_valid_email(email):
        raise InvalidEmailError()
    return email


def check_password_strength(password: str) -> None:
    """
    Enforce the password rules: 8+ characters, a letter and a digit.

    Raises:
        WeakPasswordError: with the first rule that fails
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise WeakPasswordError(f"パスワードは{MIN_PASSWORD_LENGTH}文字以上である必要があります")
    if not re.search(r"[A-Za-z]", password):
        raise WeakPasswordError("パスワードには英字を含める必要があります")
    if not re.search(r"[0-9]", password):
        raise WeakPasswordError("パスワードには数字を含める必要があります")

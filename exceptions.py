"""
Custom Exceptions for Tap Karte
===============================

This module defines a hierarchy of custom exceptions that:

1. **Categorize Errors**: Different exception types for different problems
2. **Carry Context**: Include relevant information for debugging
3. **Support APIs**: Map cleanly to HTTP status codes (see
   api/middleware/error_handler.py)

User-facing messages are Japanese because they are shown verbatim in the UI.

Exception Hierarchy:
    TapKarteError (base)
    ├── InputValidationError
    │   ├── EmptyInputError
    │   ├── InputTooLongError
    │   ├── InvalidOptionError
    │   ├── PersonalInfoDetectedError
    │   ├── MissingFieldError
    │   ├── InvalidEmailError
    │   └── WeakPasswordError
    ├── ConversionError
    │   ├── LLMConfigurationError
    │   ├── LLMAuthenticationError
    │   ├── LLMRateLimitError
    │   ├── LLMTimeoutError
    │   ├── LLMServiceError
    │   └── EmptyLLMResponseError
    ├── AuthenticationError
    │   ├── InvalidCredentialsError
    │   ├── InvalidTokenError
    │   └── GoogleTokenError
    ├── EmailAlreadyRegisteredError
    ├── UserNotFoundError
    ├── StorageUnavailableError
    └── ConfigurationError
"""

from typing import Optional


class TapKarteError(Exception):
    """
    Base exception for all Tap Karte errors.

    Attributes:
        message: Human-readable error description (shown to the user)
        details: Additional context (dict for API responses)
    """

    error_type: str = "internal_error"

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """
        Convert to dictionary for API responses.

        The envelope matches the success responses: a boolean ``success``
        flag and an ``error`` message the UI can show directly.
        """
        return {
            "success": False,
            "error": self.message,
            "error_type": self.__class__.__name__,
            "errorType": self.error_type,
            "details": self.details
        }


# =============================================================================
# Input Validation Errors
# =============================================================================

class InputValidationError(TapKarteError):
    """Base class for rejected request input."""
    error_type = "validation_error"


class EmptyInputError(InputValidationError):
    """Raised when the input text is missing or blank."""

    def __init__(self):
        super().__init__(message="入力テキストが空です")


class InputTooLongError(InputValidationError):
    """Raised when the input text exceeds the configured maximum."""

    def __init__(self, length: int, max_length: int):
        super().__init__(
            message=f"入力テキストが長すぎます（{max_length:,}文字以内）",
            details={"length": length, "max_length": max_length}
        )


class InvalidOptionError(InputValidationError):
    """Raised when a formatting option is not one of the allowed values."""

    def __init__(self, field: str, value, allowed: list[str]):
        super().__init__(
            message="無効なオプションが選択されています",
            details={"field": field, "value": value, "allowed": allowed}
        )


class PersonalInfoDetectedError(InputValidationError):
    """
    Raised when the input looks like it contains personal information.

    Only the detector names are kept, never the matched text.
    """
    error_type = "security_warning"

    def __init__(self, kinds: list[str]):
        super().__init__(
            message="個人情報らしきデータが検出されました。個人情報は入力しないでください。",
            details={"detected": kinds}
        )


class MissingFieldError(InputValidationError):
    """Raised when required request fields are absent."""

    def __init__(self, fields: list[str], message: Optional[str] = None):
        super().__init__(
            message=message or f"必須項目が入力されていません: {', '.join(fields)}",
            details={"fields": fields}
        )


class InvalidEmailError(InputValidationError):
    """Raised for syntactically invalid email addresses."""

    def __init__(self):
        super().__init__(message="有効なメールアドレスを入力してください")


class WeakPasswordError(InputValidationError):
    """Raised when a password does not meet the strength rules."""

    def __init__(self, reason: str):
        super().__init__(message=reason)


# =============================================================================
# Conversion (LLM) Errors
# =============================================================================

class ConversionError(TapKarteError):
    """Base class for failures while calling the LLM."""
    error_type = "api_error"


class LLMConfigurationError(ConversionError):
    """Raised when the selected provider has no API key configured."""
    error_type = "config_error"

    def __init__(self, provider: str):
        super().__init__(
            message=f"{provider} APIキーが設定されていません",
            details={"provider": provider}
        )


class LLMAuthenticationError(ConversionError):
    """Raised when the provider rejects the API key."""
    error_type = "api_auth_error"

    def __init__(self, provider: str):
        super().__init__(
            message="APIキーの設定に問題があります。管理者にお問い合わせください。",
            details={"provider": provider}
        )


class LLMRateLimitError(ConversionError):
    """Raised when the provider quota or rate limit is exhausted."""
    error_type = "rate_limit_error"

    def __init__(self, provider: str):
        super().__init__(
            message="アクセス数が上限に達しました。しばらく時間をおいてからお試しください。",
            details={"provider": provider}
        )


class LLMTimeoutError(ConversionError):
    """Raised when the provider does not answer in time."""
    error_type = "timeout_error"

    def __init__(self, provider: str, timeout_seconds: float):
        super().__init__(
            message="処理時間が長すぎるため、入力テキストを短くしてお試しください。",
            details={"provider": provider, "timeout_seconds": timeout_seconds}
        )


class LLMServiceError(ConversionError):
    """Raised for any other provider failure."""

    def __init__(self, provider: str, reason: str = ""):
        super().__init__(
            message="AI変換サービスでエラーが発生しました。しばらく時間をおいて再度お試しください。",
            details={"provider": provider, "reason": reason}
        )


class EmptyLLMResponseError(ConversionError):
    """Raised when the provider returns no usable text."""
    error_type = "api_response_error"

    def __init__(self, provider: str):
        super().__init__(
            message="AI変換結果が空です",
            details={"provider": provider}
        )


# =============================================================================
# Authentication Errors
# =============================================================================

class AuthenticationError(TapKarteError):
    """Base class for authentication failures."""
    error_type = "auth_error"


class InvalidCredentialsError(AuthenticationError):
    """
    Raised on a failed email/password login.

    The message is identical for unknown emails and wrong passwords.
    """

    def __init__(self):
        super().__init__(message="メールアドレスまたはパスワードが間違っています")


class InvalidTokenError(AuthenticationError):
    """Raised when a JWT is missing, malformed, expired or badly signed."""

    def __init__(self, reason: str = "invalid"):
        super().__init__(
            message="認証が必要です",
            details={"reason": reason}
        )


class GoogleTokenError(AuthenticationError):
    """Raised when Google rejects an OAuth access token."""

    def __init__(self, reason: str = "invalid"):
        super().__init__(
            message="無効なGoogleトークンです",
            details={"reason": reason}
        )


class EmailAlreadyRegisteredError(TapKarteError):
    """Raised when registering an email that already has an account."""
    error_type = "validation_error"

    def __init__(self):
        super().__init__(message="このメールアドレスは既に使用されています")


class UserNotFoundError(TapKarteError):
    """Raised when a token refers to a user that no longer exists."""
    error_type = "not_found"

    def __init__(self, user_id):
        super().__init__(
            message="ユーザーが見つかりません",
            details={"user_id": user_id}
        )


# =============================================================================
# Infrastructure Errors
# =============================================================================

class StorageUnavailableError(TapKarteError):
    """Raised when a backing store cannot be reached."""
    error_type = "storage_error"

    def __init__(self, store: str, original_error: str = ""):
        super().__init__(
            message="データベースが利用できません",
            details={"store": store, "original_error": original_error}
        )


class ConfigurationError(TapKarteError):
    """Raised when there's a configuration problem."""
    error_type = "config_error"

    def __init__(self, setting_name: str, issue: str):
        super().__init__(
            message=f"Configuration error for '{setting_name}': {issue}",
            details={
                "setting_name": setting_name,
                "issue": issue
            }
        )

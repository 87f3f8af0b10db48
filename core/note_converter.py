"""
Note Converter for Tap Karte
============================

This module sends a fully built conversion prompt to an LLM and returns the
raw text answer. Cleanup and length limiting happen in the pipeline.

Architecture Pattern: Service with Strategy
-------------------------------------------
- LLMNoteConverter: Gemini (primary) or Anthropic Claude (backup) through
  LangChain chat models
- DemoNoteConverter: canned output when no API key is configured

LangChain gives both providers the same `prompt | llm | parser` chain, so
switching provider is a settings change.
"""

import logging
from datetime import datetime
from typing import Optional, Protocol

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_google_genai import ChatGoogleGenerativeAI

from config import Settings, get_settings
from exceptions import (
    ConversionError,
    EmptyLLMResponseError,
    LLMAuthenticationError,
    LLMConfigurationError,
    LLMRateLimitError,
    LLMServiceError,
    LLMTimeoutError,
)


# Set up module logger
logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("gemini", "anthropic")

# The prompt is already complete; the template only wraps it as a message.
_PROMPT = ChatPromptTemplate.from_messages([("human", "{prompt}")])


class NoteConverterProtocol(Protocol):
    """
    Protocol for note converters.

    This allows us to swap implementations:
    - LLMNoteConverter: Cloud LLM
    - DemoNoteConverter: No credentials
    - Fakes in tests
    """

    provider: str

    def convert(self, prompt: str) -> str:
        """Return the model's raw answer for a complete prompt."""
        ...

    async def aconvert(self, prompt: str) -> str:
        """Async version of convert()."""
        ...


def mask_api_key(api_key: Optional[str]) -> str:
    """Render an API key safe for logs."""
    if not api_key:
        return "not_provided"
    return f"***{api_key[-4:]}"


def classify_llm_error(error: Exception, provider: str, timeout_seconds: float) -> ConversionError:
    """
    Map an SDK exception to our error hierarchy.

    Provider SDKs raise a variety of exception classes, so classification is
    by type for timeouts and by message otherwise.
    """
    if isinstance(error, ConversionError):
        return error
    if isinstance(error, TimeoutError):
        return LLMTimeoutError(provider, timeout_seconds)

    message = str(error).lower()
    if "api key" in message or "api_key" in message or "permission" in message:
        return LLMAuthenticationError(provider)
    if "quota" in message or "rate limit" in message or "429" in message or "resource_exhausted" in message:
        return LLMRateLimitError(provider)
    if "timeout" in message or "timed out" in message or "deadline" in message:
        return LLMTimeoutError(provider, timeout_seconds)
    return LLMServiceError(provider, reason=type(error).__name__)


class LLMNoteConverter:
    """
    Note converter backed by a hosted LLM.

    Key Design Decisions:
    ---------------------
    1. Lazy initialization: the chat model is built on first use
    2. Errors are classified into user-facing categories
    3. API keys only ever appear masked in logs
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        llm: Optional[BaseChatModel] = None
    ):
        """
        Initialize the converter.

        Args:
            settings: Application settings (uses defaults if not provided)
            llm: Pre-configured chat model (creates one if not provided)
        """
        self.settings = settings or get_settings()
        self.provider = self.settings.llm_provider
        if self.provider not in SUPPORTED_PROVIDERS:
            raise LLMConfigurationError(self.provider)
        self._llm = llm

        logger.info(
            f"LLMNoteConverter initialized with provider: {self.provider} "
            f"(model: {self.settings.active_llm_model})"
        )

    @property
    def llm(self) -> BaseChatModel:
        """Lazy-load the chat model."""
        if self._llm is None:
            self._llm = self._create_llm()
        return self._llm

    def _create_llm(self) -> BaseChatModel:
        api_key = self.settings.active_llm_api_key
        if not api_key:
            raise LLMConfigurationError(self.provider)

        logger.info(
            f"Initializing {self.provider} chat model {self.settings.active_llm_model} "
            f"(key: {mask_api_key(api_key)})"
        )

        if self.provider == "anthropic":
            return ChatAnthropic(
                model=self.settings.anthropic_model,
                api_key=api_key,
                temperature=self.settings.llm_temperature,
                max_tokens=self.settings.llm_max_output_tokens,
                timeout=self.settings.llm_timeout,
                max_retries=1,
            )

        return ChatGoogleGenerativeAI(
            model=self.settings.gemini_model,
            google_api_key=api_key,
            temperature=self.settings.llm_temperature,
            max_output_tokens=self.settings.llm_max_output_tokens,
            timeout=self.settings.llm_timeout,
            max_retries=1,
        )

    def _chain(self):
        # Chain pattern: prompt -> llm -> output_parser
        return _PROMPT | self.llm | StrOutputParser()

    def _check_response(self, response: str) -> str:
        if not response or not response.strip():
            raise EmptyLLMResponseError(self.provider)
        logger.debug(f"Received response ({len(response)} chars)")
        return response

    def convert(self, prompt: str) -> str:
        """
        Send the prompt and return the raw answer.

        Raises:
            ConversionError: classified provider failure
        """
        logger.debug(f"Sending prompt to {self.provider} ({len(prompt)} chars)")
        try:
            response = self._chain().invoke({"prompt": prompt})
        except Exception as e:
            error = classify_llm_error(e, self.provider, self.settings.llm_timeout)
            logger.error(
                f"{self.provider} call failed: {error.error_type} "
                f"(key: {mask_api_key(self.settings.active_llm_api_key)}): {e}"
            )
            raise error from e
        return self._check_response(response)

    async def aconvert(self, prompt: str) -> str:
        """
        Async version of convert() using LangChain's native ainvoke.

        Raises:
            ConversionError: classified provider failure
        """
        logger.debug(f"Sending async prompt to {self.provider} ({len(prompt)} chars)")
        try:
            response = await self._chain().ainvoke({"prompt": prompt})
        except Exception as e:
            error = classify_llm_error(e, self.provider, self.settings.llm_timeout)
            logger.error(
                f"{self.provider} async call failed: {error.error_type} "
                f"(key: {mask_api_key(self.settings.active_llm_api_key)}): {e}"
            )
            raise error from e
        return self._check_response(response)


class DemoNoteConverter:
    """
    Converter returning a canned nursing record.

    Used when no API key is configured so the UI still works end to end.
    The prompt's memo section is echoed back (first 100 characters).
    """

    provider = "demo"

    MEMO_HEADER = "## 変換対象の観察メモ\n"

    def _extract_memo(self, prompt: str) -> str:
        start = prompt.find(self.MEMO_HEADER)
        if start == -1:
            return prompt.strip()
        memo = prompt[start + len(self.MEMO_HEADER):]
        end = memo.find("\n## ")
        return (memo if end == -1 else memo[:end]).strip()

    def convert(self, prompt: str) -> str:
        memo = self._extract_memo(prompt)
        now = datetime.now().strftime("%Y/%m/%d %H:%M")
        excerpt = memo[:100] + ("..." if len(memo) > 100 else "")

        if len(memo) < 10:
            return (
                f"本日{now}、利用者より「{memo}」との訴えあり。"
                "バイタルサインに著変なく、経過観察とする。"
                "引き続き利用者の状態を注意深く観察していく。\n"
                "※これはデモ出力です。実際のAI変換にはAPIキーの設定が必要です。"
            )

        return (
            f"S: {excerpt}\n"
            "O: バイタルサインを測定し、安定範囲内であることを確認した。"
            "表情や動作から苦痛の程度を評価した。\n"
            "A: 現時点で急変の兆候は認めない。\n"
            "P: 継続的に症状を観察し、必要に応じて主治医へ報告する。\n"
            "※これはデモ出力です。実際のAI変換にはAPIキーの設定が必要です。"
        )

    async def aconvert(self, prompt: str) -> str:
        return self.convert(prompt)


def create_note_converter(settings: Optional[Settings] = None) -> NoteConverterProtocol:
    """
    Factory function to create the configured note converter.

    Falls back to DemoNoteConverter when the provider has no API key and
    demo mode is enabled.

    Raises:
        LLMConfigurationError: no key and demo mode disabled, or unknown provider
    """
    settings = settings or get_settings()

    if not settings.active_llm_api_key:
        if settings.demo_mode_fallback:
            logger.warning(
                f"No API key configured for {settings.llm_provider}; using demo converter"
            )
            return DemoNoteConverter()
        raise LLMConfigurationError(settings.llm_provider)

    return LLMNoteConverter(settings=settings)


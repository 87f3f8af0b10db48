"""
Conversion Pipeline for Tap Karte
=================================

This module provides the orchestration layer that turns a nurse's memo into
a formatted clinical document.

Architecture Pattern: Pipeline
------------------------------
Each stage transforms the output of the previous one:

Memo → [Validator] → Clean memo + options → [Prompt builder] → Prompt
     → [Note converter] → Raw answer → [Output cleaner] → Document
     → [Record store] (best effort)

Services are injected so tests can swap the LLM for a fake and the database
for a temporary SQLite file.
"""

import asyncio
import logging
import random
import string
import time
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from config import Settings, get_settings
from core.note_converter import NoteConverterProtocol, create_note_converter
from core.output_cleaner import clean_output, enforce_char_limit
from core.record_store import RecordStore
from core.validation import validate_conversion_input
from exceptions import PersonalInfoDetectedError
from models import ClientInfo, ConversionOptions, ConversionResult, SecuritySeverity, utc_now
from prompts import build_conversion_prompt


# Set up module logger
logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def _random_base36(length: int) -> str:
    return "".join(random.choice(_BASE36) for _ in range(length))


def generate_session_id() -> str:
    """Anonymous session id: ``session_<epoch ms>_<9 base36 chars>``."""
    return f"session_{int(time.time() * 1000)}_{_random_base36(9)}"


class ConversionPipeline:
    """
    Main pipeline for converting nursing memos.

    Design Principles:
    -----------------
    1. Dependency Injection: converter and record store injected for testability
    2. Single Responsibility: only orchestrates, each stage lives in core/
    3. Persistence never fails a conversion

    Usage:
        pipeline = ConversionPipeline()
        result = pipeline.convert("頭痛あり 37.5度", "だ・である体", "記録", "文章形式")
        print(result.converted_text)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        converter: Optional[NoteConverterProtocol] = None,
        record_store: Optional[RecordStore] = None,
    ):
        """
        Initialize the pipeline with optional dependencies.

        Args:
            settings: Application settings
            converter: LLM note converter (created lazily when omitted)
            record_store: SQL store; None disables persistence
        """
        self.settings = settings or get_settings()
        self._converter = converter
        self.record_store = record_store

        logger.info("ConversionPipeline initialized")

    @property
    def converter(self) -> NoteConverterProtocol:
        """Lazy-load the note converter."""
        if self._converter is None:
            self._converter = create_note_converter(settings=self.settings)
        return self._converter

    # =========================================================================
    # Stages
    # =========================================================================

    def _validate(
        self,
        text: Any,
        style: Any,
        doc_type: Any,
        output_format: Any,
        char_limit: Any,
        client: Optional[ClientInfo],
    ) -> tuple[str, ConversionOptions]:
        try:
            return validate_conversion_input(
                text, style, doc_type, output_format, char_limit, settings=self.settings
            )
        except PersonalInfoDetectedError as e:
            self.log_security_event(
                "personal_info_detected",
                f"Detectors fired: {', '.join(e.details.get('detected', []))}",
                SecuritySeverity.WARNING,
                client,
            )
            raise

    def _finish(
        self,
        raw_output: str,
        options: ConversionOptions,
        started: float,
        session_id: Optional[str],
    ) -> ConversionResult:
        converted = enforce_char_limit(clean_output(raw_output), options.char_limit)
        response_time_ms = int((time.perf_counter() - started) * 1000)

        return ConversionResult(
            converted_text=converted,
            options=options,
            session_id=session_id or generate_session_id(),
            response_time_ms=response_time_ms,
            timestamp=utc_now(),
            provider=self.converter.provider,
            demo=self.converter.provider == "demo",
        )

    def _persist(
        self,
        memo: str,
        result: ConversionResult,
        user_id: Optional[int],
        client: Optional[ClientInfo],
    ) -> ConversionResult:
        if self.record_store is None or not self.settings.record_history:
            return result

        client = client or ClientInfo()
        try:
            result.record_id = self.record_store.save_record(
                session_id=result.session_id,
                input_text=memo,
                output_text=result.converted_text,
                options=result.options,
                response_time_ms=result.response_time_ms,
                user_id=user_id,
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            )
        except SQLAlchemyError as e:
            logger.error(f"[{result.session_id}] Failed to save record: {e}")
        return result

    def log_security_event(
        self,
        event_type: str,
        description: str,
        severity: SecuritySeverity = SecuritySeverity.INFO,
        client: Optional[ClientInfo] = None,
    ) -> None:
        """Write a security event when enabled. Failures are logged only."""
        logger.warning(f"Security event: {event_type} ({severity.value})")
        if self.record_store is None or not self.settings.record_security_events:
            return

        client = client or ClientInfo()
        try:
            self.record_store.log_security_event(
                event_type,
                description,
                severity,
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to save security event {event_type}: {e}")

    # =========================================================================
    # Entry points
    # =========================================================================

    def convert(
        self,
        text: Any,
        style: Any,
        doc_type: Any,
        output_format: Any,
        char_limit: Any = None,
        session_id: Optional[str] = None,
        user_id: Optional[int] = None,
        client: Optional[ClientInfo] = None,
    ) -> ConversionResult:
        """
        Convert a memo into a clinical document.

        Args:
            text: Free-text memo
            style: Writing style label (ですます体 / だ・である体)
            doc_type: Document type label (記録 / 報告書)
            output_format: Output format label (文章形式 / SOAP形式)
            char_limit: Requested output length, clamped to the allowed range
            session_id: Existing anonymous session id; generated when omitted
            user_id: Owner of the record when the caller is signed in
            client: Request origin for persistence

        Returns:
            ConversionResult

        Raises:
            InputValidationError: rejected input (nothing is sent to the LLM)
            ConversionError: the LLM call failed
        """
        started = time.perf_counter()
        memo, options = self._validate(text, style, doc_type, output_format, char_limit, client)

        prompt = build_conversion_prompt(memo, options)
        logger.info(
            f"Converting memo ({len(memo)} chars, {options.doc_type.value}/"
            f"{options.format.value}/{options.style.value}, limit {options.char_limit})"
        )

        raw_output = self.converter.convert(prompt)
        result = self._finish(raw_output, options, started, session_id)

        logger.info(
            f"[{result.session_id}] Conversion completed in {result.response_time_ms}ms "
            f"({len(result.converted_text)} chars, provider: {result.provider})"
        )
        return self._persist(memo, result, user_id, client)

    async def aconvert(
        self,
        text: Any,
        style: Any,
        doc_type: Any,
        output_format: Any,
        char_limit: Any = None,
        session_id: Optional[str] = None,
        user_id: Optional[int] = None,
        client: Optional[ClientInfo] = None,
    ) -> ConversionResult:
        """
        Async version of convert() for FastAPI.

        The LLM call uses LangChain's native ainvoke; database writes run in
        a worker thread so the event loop is never blocked.
        """
        started = time.perf_counter()
        memo, options = await asyncio.to_thread(
            self._validate, text, style, doc_type, output_format, char_limit, client
        )

        prompt = build_conversion_prompt(memo, options)
        logger.info(
            f"Converting memo async ({len(memo)} chars, {options.doc_type.value}/"
            f"{options.format.value}/{options.style.value}, limit {options.char_limit})"
        )

        raw_output = await self.converter.aconvert(prompt)
        result = self._finish(raw_output, options, started, session_id)

        logger.info(
            f"[{result.session_id}] Async conversion completed in {result.response_time_ms}ms "
            f"({len(result.converted_text)} chars, provider: {result.provider})"
        )
        return await asyncio.to_thread(self._persist, memo, result, user_id, client)


def create_pipeline(
    settings: Optional[Settings] = None,
    record_store: Optional[RecordStore] = None,
) -> ConversionPipeline:
    """
    Factory function to create a configured pipeline instance.

    Args:
        settings: Optional custom settings. Uses default if not provided.
        record_store: Optional store for history and security events.

    Returns:
        ConversionPipeline: Configured pipeline instance

    Example:
        pipeline = create_pipeline()
        result = await pipeline.aconvert(text, style, doc_type, fmt)
    """
    if settings is None:
        settings = get_settings()

    return ConversionPipeline(settings=settings, record_store=record_store)

"""
Core Processing Module
======================

Contains the processing components used by the conversion pipeline:
- validation: Input checks and option parsing
- pii: Personal information detectors
- note_converter: LLM adapters (Gemini, Anthropic, demo)
- output_cleaner: Model output cleanup and length limiting
- record_store: SQL persistence for records, stats and security events
"""

from core.note_converter import DemoNoteConverter, LLMNoteConverter, create_note_converter
from core.output_cleaner import clean_output, enforce_char_limit
from core.pii import contains_personal_info, detect_personal_info
from core.record_store import RecordStore, create_record_store
from core.validation import validate_conversion_input

__all__ = [
    'DemoNoteConverter',
    'LLMNoteConverter',
    'create_note_converter',
    'clean_output',
    'enforce_char_limit',
    'contains_personal_info',
    'detect_personal_info',
    'RecordStore',
    'create_record_store',
    'validate_conversion_input',
]

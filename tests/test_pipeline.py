import asyncio
import re

import pytest
from sqlalchemy import select

from conftest import FakeConverter
from core.record_store import security_logs
from exceptions import LLMTimeoutError, PersonalInfoDetectedError
from models import ClientInfo
from pipeline import ConversionPipeline, generate_session_id


MEMO = "10時 体温37.8度 頭痛の訴えあり 水分摂取促す"
ARGS = ("だ・である体", "記録", "文章形式")


@pytest.fixture
def pipeline(settings, record_store, fake_converter):
    return ConversionPipeline(settings=settings, converter=fake_converter, record_store=record_store)


def test_generate_session_id_format():
    session_id = generate_session_id()
    assert re.fullmatch(r"session_\d{13}_[0-9a-z]{9}", session_id)
    assert generate_session_id() != session_id


def test_convert_returns_cleaned_result(pipeline, fake_converter):
    result = pipeline.convert(MEMO, *ARGS, char_limit=300, session_id="session_pipe_1")

    assert result.converted_text == fake_converter.response
    assert result.session_id == "session_pipe_1"
    assert result.options.char_limit == 300
    assert result.provider == "gemini"
    assert result.demo is False
    assert result.response_time_ms >= 0
    assert MEMO in fake_converter.prompts[0]


def test_output_is_cleaned_and_limited(settings, record_store):
    converter = FakeConverter(response="【看護記録】\n" + "あ" * 300)
    pipeline = ConversionPipeline(settings=settings, converter=converter, record_store=record_store)

    result = pipeline.convert(MEMO, *ARGS, char_limit=100)

    assert result.converted_text == "あ" * 99 + "。"


def test_new_session_id_generated_when_missing(pipeline):
    result = pipeline.convert(MEMO, *ARGS)
    assert result.session_id.startswith("session_")


def test_record_is_persisted_with_client_info(pipeline, record_store):
    client = ClientInfo(ip_address="10.0.0.5", user_agent="pytest")
    result = pipeline.convert(MEMO, *ARGS, session_id="session_pipe_2", client=client)

    assert result.record_id is not None
    history = record_store.get_session_history("session_pipe_2")
    assert len(history) == 1
    assert history[0]["input_text"] == MEMO
    assert history[0]["output_text"] == result.converted_text


def test_signed_in_records_belong_to_user(pipeline, record_store):
    pipeline.convert(MEMO, *ARGS, session_id="session_pipe_3", user_id=7)

    assert len(record_store.get_user_history(7)) == 1
    assert record_store.get_session_history("session_pipe_3") == []


def test_history_disabled_skips_persistence(settings, record_store, fake_converter):
    settings.record_history = False
    pipeline = ConversionPipeline(settings=settings, converter=fake_converter, record_store=record_store)

    result = pipeline.convert(MEMO, *ARGS, session_id="session_pipe_4")

    assert result.record_id is None
    assert record_store.get_session_history("session_pipe_4") == []


def test_personal_info_never_reaches_llm(pipeline, fake_converter, record_store):
    with pytest.raises(PersonalInfoDetectedError):
        pipeline.convert("家族 090-1234-5678 に連絡", *ARGS, client=ClientInfo(ip_address="10.0.0.9"))

    assert fake_converter.prompts == []
    with record_store.engine.connect() as conn:
        rows = conn.execute(select(security_logs)).all()
    assert len(rows) == 1
    assert rows[0].event_type == "personal_info_detected"
    assert rows[0].severity == "warning"
    assert rows[0].ip_address == "10.0.0.9"
    assert "090" not in rows[0].description


def test_llm_errors_propagate(settings, record_store):
    converter = FakeConverter(error=LLMTimeoutError("gemini", 30))
    pipeline = ConversionPipeline(settings=settings, converter=converter, record_store=record_store)

    with pytest.raises(LLMTimeoutError):
        pipeline.convert(MEMO, *ARGS, session_id="session_pipe_5")
    assert record_store.get_session_history("session_pipe_5") == []


def test_demo_converter_marks_result(settings):
    pipeline = ConversionPipeline(settings=settings, converter=FakeConverter(provider="demo"))
    result = pipeline.convert(MEMO, *ARGS)

    assert result.demo is True
    assert result.record_id is None


def test_aconvert_matches_convert(pipeline, record_store):
    result = asyncio.run(pipeline.aconvert(MEMO, "ですます体", "報告書", "SOAP形式", "700", session_id="session_pipe_6"))

    assert result.options.to_public_dict()["docType"] == "報告書"
    assert result.options.char_limit == 700
    assert len(record_store.get_session_history("session_pipe_6")) == 1


def test_response_dict_shape(pipeline):
    body = pipeline.convert(MEMO, *ARGS, session_id="session_pipe_7").to_response_dict()

    assert body["success"] is True
    assert body["options"] == {"style": "だ・である体", "docType": "記録", "format": "文章形式"}
    assert body["sessionId"] == "session_pipe_7"
    assert body["performance"]["timestamp"].endswith("Z")

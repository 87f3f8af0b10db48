import json

import pytest

import cli


MEMO = "10時 体温37.8度 頭痛の訴えあり 水分摂取促す"


def test_json_output_uses_demo_converter_without_key(capsys):
    exit_code = cli.main(["--text", MEMO, "--json", "--format", "SOAP形式"])

    assert exit_code == 0
    body = json.loads(capsys.readouterr().out)
    assert body["success"] is True
    assert body["demo"] is True
    assert body["options"]["format"] == "SOAP形式"
    assert body["convertedText"].startswith("S: ")


def test_plain_output_from_file(tmp_path, capsys):
    memo_file = tmp_path / "memo.txt"
    memo_file.write_text(MEMO, encoding="utf-8")

    exit_code = cli.main([str(memo_file), "--quiet", "--char-limit", "100"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "S: " in out
    assert "Converting memo" not in out


def test_validation_error_exit_code(capsys):
    exit_code = cli.main(["--text", "連絡先 090-1234-5678", "--json"])

    assert exit_code == 1
    body = json.loads(capsys.readouterr().out)
    assert body["success"] is False
    assert body["errorType"] == "security_warning"


def test_missing_file(tmp_path, capsys):
    exit_code = cli.main([str(tmp_path / "missing.txt"), "--no-banner"])

    assert exit_code == 1
    assert "Cannot read" in capsys.readouterr().out


def test_invalid_choice_rejected_by_parser():
    with pytest.raises(SystemExit):
        cli.main(["--text", MEMO, "--style", "丁寧語"])

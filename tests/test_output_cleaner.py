from core.output_cleaner import clean_output, enforce_char_limit


class TestCleanOutput:
    def test_strips_titles_and_recorder_lines(self):
        raw = (
            "【訪問看護記録】\n"
            "**記録者：[看護師名]**\n"
            "利用者は頭痛を訴えている。\n"
            "\n"
            "水分摂取を促した。"
        )
        assert clean_output(raw) == "利用者は頭痛を訴えている。\n水分摂取を促した。"

    def test_removes_medical_record_wrappers(self):
        assert clean_output("medical_record 体温37.5℃。/medical_record") == "体温37.5℃。"

    def test_removes_bold_timestamp_and_placeholder_time(self):
        raw = "**2024年5月1日 10時30分** 〇月〇日 10時 訪室時、発熱を認める。"
        assert "2024年5月1日" not in clean_output(raw)
        assert clean_output(raw).endswith("発熱を認める。")

    def test_removes_decorated_headings(self):
        raw = "■概要■ 状態安定。◆所見◆ 浮腫なし。"
        assert clean_output(raw) == "状態安定。浮腫なし。"

    def test_plain_text_is_unchanged(self):
        text = "S: 頭が痛い\nO: BT 37.8℃\nA: 発熱あり\nP: 経過観察"
        assert clean_output(text) == text


class TestEnforceCharLimit:
    def test_short_text_untouched(self):
        assert enforce_char_limit("体温37.5℃。", 100) == "体温37.5℃。"

    def test_exact_length_untouched(self):
        assert enforce_char_limit("あ" * 10, 10) == "あ" * 10

    def test_long_text_cut_and_closed_with_period(self):
        result = enforce_char_limit("あ" * 20, 10)
        assert result == "あ" * 9 + "。"
        assert len(result) == 10

    def test_tiny_limits_are_hard_cuts(self):
        assert enforce_char_limit("あいうえお", 3) == "あいう"
        assert enforce_char_limit("あいうえお", 1) == "あ"

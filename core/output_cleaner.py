"""
LLM Output Cleanup
==================

Models like to decorate their answers with titles, recorder lines and
placeholder timestamps that don't belong in a pasted clinical record. This
module strips those artefacts and applies the strict output length limit.
"""

import re


# Applied in order. Each entry is (pattern, replacement).
_CLEANUP_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"^medical_record\s*", re.IGNORECASE), ""),
    (re.compile(r"/medical_record\s*$", re.IGNORECASE), ""),
    (re.compile(r"medical_record", re.IGNORECASE), ""),
    # **2024年5月1日 10時30分**
    (re.compile(r"\*\*\d{4}年\d{1,2}月\d{1,2}日\s+\d{1,2}時\d{1,2}分\*\*"), ""),
    # **記録者：[...]** and **記録者：...**
    (re.compile(r"\*\*記録者：\[.*?\]\*\*"), ""),
    (re.compile(r"\*\*記録者：.*?\*\*"), ""),
    # Lines starting with a date
    (re.compile(r"^\d{4}年\d{1,2}月\d{1,2}日.*?\n", re.MULTILINE), ""),
    (re.compile(r"記録者：.*?\n", re.MULTILINE), ""),
    (re.compile(r"^\*+\s*", re.MULTILINE), ""),
    (re.compile(r"〇月〇日\s+〇時〇分"), ""),
    (re.compile(r"^\*+$", re.MULTILINE), ""),
    # Decorative titles: 【...】 ■...■ ◆...◆ ▼...▼ <...>
    (re.compile(r"【.*?】\s*"), ""),
    (re.compile(r"■.*?■\s*"), ""),
    (re.compile(r"◆.*?◆\s*"), ""),
    (re.compile(r"▼.*?▼\s*"), ""),
    (re.compile(r"^\s*[＜<].*?[＞>]\s*$", re.MULTILINE), ""),
    # Title lines naming the document kind
    (re.compile(r"^.*?(記録書|報告書|申し送り書|看護記録).*?\n", re.MULTILINE), ""),
    (re.compile(r"\n\s*\n"), "\n"),
]


def clean_output(text: str) -> str:
    """
    Remove formatting artefacts from model output.

    Args:
        text: Raw model output

    Returns:
        Trimmed text with titles, placeholder dates, recorder lines and
        blank lines removed.
    """
    cleaned = text.strip()
    for pattern, replacement in _CLEANUP_RULES:
        cleaned = pattern.sub(replacement, cleaned)
    return cleaned.strip()


def enforce_char_limit(text: str, limit: int) -> str:
    """
    Cut text to at most ``limit`` characters.

    Longer text is cut to ``limit - 1`` characters and closed with "。" so the
    record still ends like a sentence. Limits of 3 or less are a hard cut.
    """
    if limit <= 0 or len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]
    return text[:limit - 1] + "。"

"""
Conversion Prompts for Tap Karte
================================

This module builds the prompt that turns an informal nursing memo into a
formatted clinical document.

The prompt is assembled from blocks:
- Role and base policy (never invent information, say 利用者 not 患者)
- Medical terminology glossary
- Output requirements (style, format, character limit)
- Document-type block (reports get an extra requirements section)
- Format block (SOAP structure or narrative rules)
- Style block (example sentence endings for the chosen register)
- The memo itself and an output header

Everything here is pure string templating; the model call lives in
core/note_converter.py.
"""

from typing import Optional

from models import ConversionOptions, DocumentType, OutputFormat, WritingStyle


# =============================================================================
# Medical Terminology Glossary
# =============================================================================

# Representative subset of the terms the UI ships with. Interpolated as
# "・term: meaning" lines so the model prefers professional vocabulary.
MEDICAL_TERMS: dict[str, str] = {
    "バイタル": "バイタルサイン（体温・脈拍・血圧・呼吸数・SpO2）",
    "SpO2": "経皮的動脈血酸素飽和度",
    "BT": "体温",
    "BP": "血圧",
    "HR": "心拍数",
    "RR": "呼吸数",
    "ADL": "日常生活動作",
    "IADL": "手段的日常生活動作",
    "ROM": "関節可動域",
    "ROM訓練": "関節可動域訓練",
    "MMT": "徒手筋力テスト",
    "端座位": "ベッドの端に腰掛けて足を下ろした座位",
    "体位変換": "褥瘡予防のために体の向きを変えること",
    "褥瘡": "持続的な圧迫による皮膚・軟部組織の損傷（床ずれ）",
    "発赤": "皮膚が赤くなっている状態",
    "浮腫": "皮下組織に水分が貯留した状態（むくみ）",
    "喀痰": "痰を吐き出すこと、またはその痰",
    "吸引": "口腔・鼻腔・気管内の分泌物を除去する処置",
    "嚥下": "飲み込むこと",
    "誤嚥": "食物や唾液が気管に入ること",
    "排泄": "排尿・排便",
    "傾眠": "刺激がないと眠ってしまう軽度の意識障害",
    "清拭": "身体を拭いて清潔を保つケア",
    "移乗": "ベッドと車椅子間などの乗り移り",
    "歩行器": "歩行を補助する福祉用具",
    "服薬管理": "処方薬を指示通りに服用できるよう管理すること",
}


# =============================================================================
# Prompt Blocks
# =============================================================================

NURSE_SYSTEM_PROMPT = """あなたは経験豊富な看護師・理学療法士・作業療法士です。
非公式な観察メモを、医療記録の基準に適合した記録へ変換する専門家として振る舞ってください。"""


CONVERSION_PROMPT_TEMPLATE = """## 役割と目的
{system_prompt}

## 変換要件
### 基本方針
- 入力された観察内容のみを使用し、情報を追加・創作しない
- 医療専門用語を適切に使用し、正確で簡潔な記録を作成する
- 「患者」は全て「利用者」と表記する
- 誤字脱字は医療・介護の専門用語を用いて適切に修正する

### 医療・リハビリ専門用語（必須参照）
{medical_terms}

### 出力仕様
- **ドキュメント**: {doc_type}
- **文体**: {style}
- **形式**: {format}
- **文字制限**: {char_limit}文字以内
{doc_type_block}{format_block}
### 文体規則
{style_block}

## 変換対象の観察メモ
{text}

## {doc_type}（{format}・{style}・{char_limit}文字以内）"""


REPORT_REQUIREMENTS_BLOCK = """
### 報告書作成要件
報告書は、医師やケアマネジャーが状況を即座に把握できることを第一に、要点を簡潔にまとめてください。
見出しは使用せず、時系列や重要度に応じて論理的に構成された自然な文章で記述します。
観察された問題点については、具体的で実行可能な解決策と今後の方針を明確に提案してください。
"""


RECORD_REQUIREMENTS_BLOCK = """
### 記録作成要件
日常会話的な文章やメモを、公式な「訪問看護記録書」として客観的かつ専門的な文章に書き換えてください。
"""


SOAP_FORMAT_BLOCK = """
### SOAP形式の構造
S: (Subjective) 利用者の主観的情報
O: (Objective) 客観的観察事実
A: (Assessment) 評価・分析
P: (Plan) 計画・方針
"""


NARRATIVE_FORMAT_BLOCK = """
### 文章形式の要件
- 定型的な見出し（「利用者の状態は〜」「バイタルサイン：」等）は使用しない
- 時系列順または重要度順で論理的に構成する
- 観察事実、利用者の発言、実施したケアを自然な文章で統合する
- 段落構成を意識し、読みやすさを重視する
"""


PLAIN_STYLE_BLOCK = """**だ・である調の表現例**
- 断定: 「〜である」「〜だ」
- 状態: 「〜している」「〜がある」
- 観察: 「〜が見られる」「〜を認める」
- 継続: 「〜を継続する」「〜が必要である」
参考例文: 「訪室時、利用者に発熱がみられる。状態は安定している。今後も継続的な観察が必要である。」"""


POLITE_STYLE_BLOCK = """**ですます調の表現例**
- 「〜みられます」「〜しています」「〜です」「〜必要です」
参考例文: 「訪室時、利用者に発熱がみられます。状態は安定しています。今後も継続的な観察が必要です。」"""


# =============================================================================
# Builders
# =============================================================================

def get_system_prompt() -> str:
    """Role description placed at the top of every conversion prompt."""
    return NURSE_SYSTEM_PROMPT


def format_medical_terms(terms: Optional[dict[str, str]] = None) -> str:
    """
    Render the glossary as prompt lines.

    Args:
        terms: Glossary to render. Defaults to MEDICAL_TERMS.

    Returns:
        One "・term: meaning" line per entry, in insertion order.
    """
    glossary = MEDICAL_TERMS if terms is None else terms
    return "\n".join(f"・{term}: {meaning}" for term, meaning in glossary.items())


def _doc_type_block(doc_type: DocumentType) -> str:
    if doc_type == DocumentType.REPORT:
        return REPORT_REQUIREMENTS_BLOCK
    return RECORD_REQUIREMENTS_BLOCK


def _format_block(output_format: OutputFormat) -> str:
    if output_format == OutputFormat.SOAP:
        return SOAP_FORMAT_BLOCK
    return NARRATIVE_FORMAT_BLOCK


def _style_block(style: WritingStyle) -> str:
    if style == WritingStyle.PLAIN:
        return PLAIN_STYLE_BLOCK
    return POLITE_STYLE_BLOCK


def build_conversion_prompt(
    text: str,
    options: ConversionOptions,
    terms: Optional[dict[str, str]] = None
) -> str:
    """
    Build the complete conversion prompt.

    Args:
        text: Sanitized memo text to convert
        options: Validated conversion options
        terms: Optional glossary override (defaults to MEDICAL_TERMS)

    Returns:
        Prompt string ready to send to the LLM
    """
    return CONVERSION_PROMPT_TEMPLATE.format(
        system_prompt=get_system_prompt(),
        medical_terms=format_medical_terms(terms),
        doc_type=options.doc_type.value,
        style=options.style.value,
        format=options.format.value,
        char_limit=options.char_limit,
        doc_type_block=_doc_type_block(options.doc_type),
        format_block=_format_block(options.format),
        style_block=_style_block(options.style),
        text=text,
    )

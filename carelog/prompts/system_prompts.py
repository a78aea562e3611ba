# Prompts for care log sheet extraction.
# - Sheets are Japanese paper grids: residents x (排便 / 排尿 / 水分) x hour 0..23.
# - Prompts provided:
#   1) build_image_system_prompt   (vision request over the sheet image or PDF)
#   2) build_ocr_system_prompt     (structure parse over Vision OCR text)
#   3) user texts for both variants, the relaxed-retry text and the
#      "at least one event" insistence appended on the second OCR attempt
#
# Rule lines are kept as lists so the roster allow-list can be appended.

from typing import List, Optional, Sequence

# =============================================================================
# SHARED CELL-READING RULES
# =============================================================================
_CELL_RULES = [
    "セルの記号: 数字=そのまま count、✓=guided:true、△=incontinence:true。'2✓△' は count=2, guided:true, incontinence:true。",
    "排尿・排便の数字は回数として count に入れてください。水分は ml などの単位付き数値を note に残し、count は 1 としてください。",
    "カテゴリ: 排尿→urination、排便→defecation、水分→fluid。必要に応じて note を使ってください。",
]

# =============================================================================
# IMAGE / DOCUMENT VARIANT
# =============================================================================
_IMAGE_SYSTEM_HEAD = [
    "あなたは画像から、介護施設の『排尿・排便・水分』記録表を抽出し正規化するアシスタントです。",
    "表は 0〜23 時（24列）です。右端の『合計』列は events に含めないでください。",
]

_IMAGE_SYSTEM_TAIL = [
    "推測での補完は禁止。ただし読み取れた範囲で部分的な行でも出力してください。",
    "各入居者は『排便』『排尿』『水分』の3行が1セットで並び、各カテゴリ行の右方向に 0..23 の時間列が続きます。",
    "0..23 の各列について、セルが空でない場合は必ず events に 1 件として出力してください（空欄は出力しない）。",
    "『合計』『計』『凡例』などの見出し列・右端の合計列は events に含めないでください。",
    "名前はグリッド左側の氏名欄から取得し、同じ入居者の全カテゴリ行に継承してください。",
    "返答はデータ本体の JSON のみ。説明文・コードブロック・スキーマ定義は返さないでください。",
]

IMAGE_USER_TEXT = (
    "次の画像から表の内容を抽出し、指定スキーマの JSON を返してください。"
    "各カテゴリ行の 0..23 の空でないセルを漏れなく events に含め、合計や凡例は無視してください。"
    "返答は JSON のみで、説明やスキーマは不要です。"
)

RELAXED_RETRY_TEXT = "指定スキーマに準拠した JSON のみを返してください。説明やコードブロックは不要です。"

# =============================================================================
# OCR-TEXT VARIANT (structure parse)
# =============================================================================
_OCR_SYSTEM_HEAD = [
    "あなたはGoogle VisionのOCR結果から、介護施設の『排尿・排便・水分』記録を抽出し正規化するアシスタントです。",
    "列は 0〜23 時（24列）。右端の『合計』列は events に含めないでください。",
]

_OCR_SYSTEM_TAIL = [
    "推測での補完は禁止。ただし読み取れた範囲で部分的な行でも出力してください。",
]

OCR_USER_HEAD = [
    "次のOCR結果（平文+JSON抜粋）から、入居者ごとの『排尿・排便・水分』× 時刻(0〜23)のセルを events にしてください。",
    "表として読み取れない場合は、改行やスペースから行列を推定して、分かる部分だけ出力してください。",
]

AT_LEAST_ONE_EVENT_TEXT = "※必ず events に1件以上出力してください（分かる範囲で構いません）。"

# Characters of the serialized OCR response included in the user message
OCR_JSON_EXCERPT_CHARS = 8000


def _date_rule(sheet_hint_iso: str) -> str:
    return (
        "date_iso は見出しに『YYYY 年 M 月 D 日』があればそれを優先、"
        f"無ければ既定日({sheet_hint_iso})を使ってください。"
    )


def _roster_rule(roster_names: Optional[Sequence[str]]) -> List[str]:
    names = [n for n in (roster_names or []) if n]
    if not names:
        return []
    return [
        "resident_name は次の入居者名簿のいずれかに一致させてください（該当がなければ読み取ったまま）: "
        + "、".join(names)
    ]


def build_image_system_prompt(
    sheet_hint_iso: str, roster_names: Optional[Sequence[str]] = None
) -> str:
    lines = (
        _IMAGE_SYSTEM_HEAD
        + _CELL_RULES
        + [_date_rule(sheet_hint_iso)]
        + _IMAGE_SYSTEM_TAIL
        + _roster_rule(roster_names)
    )
    return "\n".join(lines)


def build_ocr_system_prompt(
    sheet_hint_iso: str, roster_names: Optional[Sequence[str]] = None
) -> str:
    lines = (
        _OCR_SYSTEM_HEAD
        + _CELL_RULES
        + [_date_rule(sheet_hint_iso)]
        + _OCR_SYSTEM_TAIL
        + _roster_rule(roster_names)
    )
    return "\n".join(lines)


def build_ocr_user_text(plain_text: str, ocr_json_excerpt: str, insist: bool = False) -> str:
    """User message for the OCR-text variant.

    ``insist`` appends the demand for at least one event (second attempt).
    """
    body = plain_text
    if insist:
        body = f"{plain_text}\n\n{AT_LEAST_ONE_EVENT_TEXT}"
    return "\n".join(
        OCR_USER_HEAD
        + ["", "【平文】", body, "", "【OCR JSON 抜粋】", ocr_json_excerpt[:OCR_JSON_EXCERPT_CHARS]]
    )

"""Unit tests for the coordinate-based grid reconstruction."""

import pytest

from carelog.models.extraction import SOURCE_GEOMETRY
from carelog.services.extraction.geometry_fallback import (
    GEOMETRY_CONFIDENCE,
    GeometryExtractor,
    OCRToken,
    detect_category_rows,
    detect_hour_columns,
    detect_resident_names,
    geometry_fallback,
    parse_cell_mark,
    tokens_from_text_annotations,
)


class TestParseCellMark:

    def test_count_with_flags(self):
        mark = parse_cell_mark("2✓△")
        assert (mark.count, mark.guided, mark.incontinence) == (2, True, True)

    def test_lone_check_counts_once(self):
        mark = parse_cell_mark("レ")
        assert (mark.count, mark.guided, mark.incontinence) == (1, True, False)

    def test_lone_triangle_counts_once(self):
        mark = parse_cell_mark("△")
        assert (mark.count, mark.incontinence) == (1, True)

    def test_zero_is_blank(self):
        assert parse_cell_mark("0").is_blank


class TestTokens:

    def test_first_annotation_is_skipped_and_tokens_sorted(self, build_grid_ocr):
        tokens = tokens_from_text_annotations(build_grid_ocr(hours=2))
        assert [t.text for t in tokens[:2]] == ["0", "1"]
        assert all(t.y <= u.y for t, u in zip(tokens, tokens[1:]))

    def test_malformed_response(self):
        assert tokens_from_text_annotations({}) == []
        assert tokens_from_text_annotations({"responses": [{"textAnnotations": [{}]}]}) == []


class TestLayoutDetection:

    def test_hour_columns_in_order(self, build_grid_ocr):
        tokens = tokens_from_text_annotations(build_grid_ocr())
        columns = detect_hour_columns(tokens)
        assert len(columns) == 24
        assert columns == sorted(columns)

    def test_too_few_hour_columns(self, build_grid_ocr):
        tokens = tokens_from_text_annotations(build_grid_ocr(hours=8))
        assert detect_hour_columns(tokens) is None

    def test_category_rows_merge_same_line(self):
        tokens = [OCRToken("排尿", 100, 100), OCRToken("排尿", 300, 104), OCRToken("水分", 100, 160)]
        rows = detect_category_rows(tokens)
        assert [r.label for r in rows] == ["urination", "fluid"]

    def test_resident_name_pieces_are_joined(self):
        tokens = [OCRToken("山田", 20, 100), OCRToken("太郎", 60, 102), OCRToken("合計", 20, 400)]
        names = detect_resident_names(tokens)
        assert [n.label for n in names] == ["山田太郎"]


class TestGeometryExtractor:

    def test_reconstructs_cells(self, build_grid_ocr, roster):
        ocr = build_grid_ocr(cells=[("2✓", 8, 0), ("△", 10, 1), ("1", 14, 2)])
        result = GeometryExtractor(roster).extract(ocr, "2025-09-25")

        assert result.source == SOURCE_GEOMETRY
        assert result.sheet_date == "2025-09-25"
        events = sorted(result.events, key=lambda e: e["hour"])
        assert [(e["hour"], e["category"], e["count"]) for e in events] == [
            (8, "urination", 2),
            (10, "defecation", 1),
            (14, "fluid", 1),
        ]
        assert events[0]["guided"] is True
        assert events[1]["incontinence"] is True
        assert all(e["resident_name"] == "山田太郎" for e in events)
        assert all(e["confidence"] == pytest.approx(GEOMETRY_CONFIDENCE) for e in events)

    def test_header_digits_are_not_cells(self, build_grid_ocr, roster):
        result = GeometryExtractor(roster).extract(build_grid_ocr(), "2025-09-25")
        assert result.events == []

    def test_fewer_than_twelve_columns_yields_nothing(self, build_grid_ocr, roster):
        ocr = build_grid_ocr(hours=8, cells=[("2", 3, 0)])
        result = GeometryExtractor(roster).extract(ocr, "2025-09-25")
        assert result.events == []
        assert result.diagnostics["hour_columns"] < 12

    def test_unmatched_names_are_dropped(self, build_grid_ocr):
        ocr = build_grid_ocr(cells=[("1", 3, 0)])
        result = GeometryExtractor([]).extract(ocr, "2025-09-25")
        assert result.events == []
        assert result.diagnostics["unmatched_names"] == ["山田太郎"]

    def test_event_cap(self, build_grid_ocr, roster):
        ocr = build_grid_ocr(cells=[("1", h, 0) for h in range(24)])
        result = GeometryExtractor(roster, event_cap=5).extract(ocr, "2025-09-25")
        assert len(result.events) == 5

    def test_empty_response(self, roster):
        result = GeometryExtractor(roster).extract({}, "2025-09-25")
        assert result.events == []
        assert result.diagnostics == {"tokens": 0}


def test_functional_entry_point_returns_payload(build_grid_ocr, roster):
    payload = geometry_fallback(build_grid_ocr(cells=[("3", 5, 0)]), "2025-09-25", roster)
    assert payload["sheet"] == {"date_iso": "2025-09-25"}
    assert payload["events"][0]["count"] == 3

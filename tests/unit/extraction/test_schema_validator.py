"""Unit tests for CareSheet payload validation."""

from carelog.services.extraction.schema_validator import needs_retry, validate_payload


def _event(**overrides):
    event = {"resident_name": "山田太郎", "category": "urination", "hour": 8, "count": 1}
    event.update(overrides)
    return event


def _payload(*events):
    return {"sheet": {"date_iso": "2025-09-25"}, "events": list(events)}


class TestValidatePayload:

    def test_valid_payload(self):
        assert validate_payload(_payload(_event(guided=True, confidence=0.9)))

    def test_missing_sheet_is_invalid(self):
        assert not validate_payload({"events": [_event()]})

    def test_hour_out_of_range_is_invalid(self):
        assert not validate_payload(_payload(_event(hour=24)))

    def test_zero_count_is_invalid(self):
        assert not validate_payload(_payload(_event(count=0)))

    def test_string_hour_is_invalid(self):
        assert not validate_payload(_payload(_event(hour="8")))

    def test_empty_and_non_dict(self):
        assert not validate_payload({})
        assert not validate_payload([])
        assert not validate_payload(None)


class TestNeedsRetry:

    def test_invalid_payload_needs_retry(self):
        assert needs_retry({"events": []})

    def test_valid_but_empty_needs_retry(self):
        assert needs_retry(_payload())

    def test_valid_with_events_does_not(self):
        assert not needs_retry(_payload(_event()))

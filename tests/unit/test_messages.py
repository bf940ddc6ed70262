"""Unit tests for message decoding."""

import pytest

from pmp.common.exceptions import DecodeError
from pmp.ingestion.messages import RawMessage, decode_message

from tests.unit.fakes import raw_message


class TestDecodeMessage:
    """Test suite for decode_message()."""

    def test_decodes_json_object_with_date(self):
        payload = {"date": "2026-02-28", "data": [{"border": "DK1-DE", "times": {"1": 42.0}}]}

        decoded = decode_message(raw_message("cables", payload))

        assert decoded.topic == "cables"
        assert decoded.date == "2026-02-28"
        assert decoded.payload == payload

    @pytest.mark.parametrize(
        "value",
        [
            None,
            b"",
            b"not json",
            b"\xff\xfe\x00",
            b"[1, 2, 3]",
            b'"2026-02-28"',
        ],
    )
    def test_rejects_undecodable_values(self, value):
        with pytest.raises(DecodeError) as exc_info:
            decode_message(RawMessage(topic="exchanges", value=value))

        assert exc_info.value.topic == "exchanges"

    def test_rejects_missing_date(self):
        with pytest.raises(DecodeError, match="no date"):
            decode_message(raw_message("cables", {"data": []}))

    @pytest.mark.parametrize(
        "date",
        [
            "28-02-2026",
            "2026/02/28",
            "2026-2-28",
            "20260228",
            20260228,
            "2026-02-28\n",
            "\uff12\uff10\uff12\uff16-02-28",
        ],
    )
    def test_rejects_malformed_date(self, date):
        with pytest.raises(DecodeError):
            decode_message(raw_message("cables", {"date": date, "data": []}))

import math
from datetime import datetime

import pytest

from radio_memo.csv_codec import (
    BOM,
    dump_csv,
    header_for,
    load_csv,
    parse_csv,
    parse_frequency,
    split_fields,
    split_records,
)
from radio_memo.errors import FormatError


def test_header_depends_on_schema_version():
    assert header_for(1) == ["timestamp", "band", "frequency", "unit", "memo"]
    assert header_for(2) == ["uuid", "timestamp", "band", "frequency", "unit", "memo"]
    assert header_for(3) == ["uuid", "timestamp", "band", "frequency", "unit", "callsign", "rst", "memo"]
    with pytest.raises(ValueError):
        header_for(9)


def test_dump_quotes_every_field(make_entry):
    e = make_entry(uuid="u-1", band="AM", frequency=594.0, memo='say "hi"')
    text = dump_csv([e])
    assert text.startswith(BOM)
    assert text.endswith("\n")
    lines = text[len(BOM):].split("\n")
    assert lines[0] == '"uuid","timestamp","band","frequency","unit","callsign","rst","memo"'
    assert lines[1] == '"u-1","2024-07-04T12:00:00Z","AM","594.0","kHz","JA1ABC","59","say ""hi"""'


def test_dump_old_schema_drops_newer_columns(make_entry):
    text = dump_csv([make_entry(uuid="u-1")], schema_version=1)
    header, rows = parse_csv(text)
    assert header == ["timestamp", "band", "frequency", "unit", "memo"]
    assert rows[0]["uuid"] == ""
    assert rows[0]["callsign"] == ""


def test_split_records_respects_quoted_newlines():
    text = 'a,b\r\n"1","line one\nline two"\r\n\r\n"2","x"\n'
    assert split_records(text) == ["a,b", '"1","line one\nline two"', '"2","x"']


def test_split_fields_unescapes_and_trims():
    assert split_fields('"a, b" , "say ""hi""",plain ,') == ["a, b", 'say "hi"', "plain", ""]


def test_tricky_memo_round_trips(make_entry):
    memo = 'He said "QRZ?", then\nsigned off, 73'
    entries = [make_entry(uuid="u-1", memo=memo, callsign="K1ABC", rst="599")]
    decoded = load_csv(dump_csv(entries))
    assert decoded.rejected == []
    (e,) = decoded.entries
    assert e.memo == memo
    assert e.uuid == "u-1"
    assert e.callsign == "K1ABC"
    assert e.rst == "599"


def test_round_trip_preserves_fields(make_entry):
    originals = [
        make_entry(uuid="a", band="AM", frequency=594.0, memo="NHK", timestamp=datetime(2024, 1, 2, 3, 4, 5)),
        make_entry(uuid="b", band="CW", frequency=14.0525, callsign="", rst="", memo=""),
        make_entry(uuid="c", band="FM", frequency=80.0, memo="line1\nline2"),
    ]
    decoded = load_csv(dump_csv(originals))
    assert len(decoded.entries) == 3
    for before, after in zip(originals, decoded.entries):
        for attr in ("uuid", "band", "frequency", "callsign", "rst", "memo", "timestamp"):
            assert getattr(after, attr) == getattr(before, attr), attr


def test_columns_resolved_by_name():
    text = (
        "Memo,Frequency,Extra,Band,Timestamp\n"
        "hello,7.1,ignored,usb,2024-07-04T12:00:00Z\n"
    )
    decoded = load_csv(text)
    (e,) = decoded.entries
    assert e.band == "USB"
    assert e.frequency == 7.1
    assert e.memo == "hello"
    assert e.uuid is None
    assert decoded.ignored_columns == ["extra"]
    assert e.callsign == ""
    assert e.rst == ""


def test_short_rows_read_missing_cells_as_empty():
    decoded = load_csv("timestamp,band,frequency,memo\n2024-07-04T12:00:00Z,CW,7.03\n")
    assert decoded.entries[0].memo == ""


def test_missing_required_column_is_format_error():
    with pytest.raises(FormatError) as info:
        load_csv('"timestamp","band","memo"\n"2024-07-04T12:00:00Z","USB","x"\n')
    assert info.value.missing == ["frequency"]
    assert "frequency" in str(info.value)


@pytest.mark.parametrize("text", ["", BOM, "\n\n", '"timestamp","band","frequency"\n'])
def test_no_data_rows_is_format_error(text):
    with pytest.raises(FormatError):
        parse_csv(text)


def test_bad_frequency_becomes_nan_without_aborting():
    text = (
        "timestamp,band,frequency\n"
        "2024-07-04T12:00:00Z,USB,abc\n"
        "2024-07-04T12:01:00Z,USB,7.2\n"
    )
    decoded = load_csv(text)
    assert len(decoded.entries) == 2
    assert math.isnan(decoded.entries[0].frequency)
    assert decoded.entries[1].frequency == 7.2


def test_bad_rows_are_rejected_individually():
    text = (
        "timestamp,band,frequency\n"
        "not a time,USB,7.1\n"
        "2024-07-04T12:00:00Z,SSB,7.1\n"
        "2024-07-04T12:00:00Z,LSB,3.7\n"
    )
    decoded = load_csv(text)
    assert [e.band for e in decoded.entries] == ["LSB"]
    assert [r.row for r in decoded.rejected] == [1, 2]


@pytest.mark.parametrize(
    "text,expected",
    [("7.1", 7.1), (" 594 ", 594.0), ("7.1MHz", 7.1), ("-.5", -0.5), ("1e3", 1000.0)],
)
def test_parse_frequency(text, expected):
    assert parse_frequency(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "MHz 7.1", "NaN"])
def test_parse_frequency_nan(text):
    assert math.isnan(parse_frequency(text))


def test_exported_unit_column_is_ignored_on_import(make_entry):
    decoded = load_csv(dump_csv([make_entry(uuid="u-1")]))
    assert decoded.ignored_columns == ["unit"]
    assert decoded.entries[0].uuid == "u-1"

import logging
import re
from datetime import datetime

from radio_memo.exchange import (
    NOTHING_TO_EXPORT,
    delete_from_view,
    export_filename,
    export_log,
    import_log,
    read_file,
    save_to_directory,
    submit_entry,
)
from radio_memo.pagination import fetch_page
from radio_memo.storage import LogStore


class Outbox:
    """File-delivery stand-in that remembers what it was given."""

    def __init__(self):
        self.files = []

    def __call__(self, filename, text):
        self.files.append((filename, text))


def test_export_empty_store_delivers_nothing(store):
    outbox = Outbox()
    result = export_log(store, outbox)
    assert result.ok
    assert result.exported == 0
    assert result.message == NOTHING_TO_EXPORT
    assert outbox.files == []


def test_export_hands_text_to_delivery(store, make_entry):
    store.add(make_entry(memo="older", timestamp=datetime(2024, 1, 1)))
    store.add(make_entry(memo="newer", timestamp=datetime(2024, 2, 1)))
    outbox = Outbox()
    result = export_log(store, outbox, now=datetime(2024, 3, 1, 9, 30, 0))
    assert result.ok
    assert result.exported == 2
    (filename, text), = outbox.files
    assert filename == result.filename
    assert filename.startswith("radio_memo_20240301T093000Z_")
    # Display order: newest first
    assert text.index("newer") < text.index("older")


def test_export_filenames_are_unique_within_a_second():
    now = datetime(2024, 3, 1, 9, 30, 0)
    names = {export_filename(now) for _ in range(20)}
    assert len(names) == 20
    assert all(re.fullmatch(r"radio_memo_20240301T093000Z_[0-9a-f]{8}\.csv", n) for n in names)


def test_reimport_of_export_is_idempotent(store, make_entry, tmp_path):
    for i in range(5):
        store.add(make_entry(memo=f"entry {i}", timestamp=datetime(2024, 1, 1, 10, i)))
    outbox = Outbox()
    export_log(store, outbox)
    (_, text), = outbox.files

    # Back into the same store: everything is known by identity
    again = import_log(store, lambda: text)
    assert (again.accepted, again.duplicate) == (0, 5)
    assert store.count() == 5

    # Into a fresh store: first pass accepts all, second accepts none
    other = LogStore(tmp_path / "other.sqlite3")
    other.open()
    try:
        first = import_log(other, lambda: text)
        second = import_log(other, lambda: text)
        assert (first.accepted, first.duplicate) == (5, 0)
        assert (second.accepted, second.duplicate) == (0, 5)
        assert sorted(e.uuid for e in other.all()) == sorted(e.uuid for e in store.all())
    finally:
        other.dispose()


def test_import_reports_identity_duplicate(store, make_entry):
    store.add(make_entry(uuid="11111111-aaaa", memo="existing"))
    text = (
        '"uuid","timestamp","band","frequency","memo"\n'
        '"22222222-bbbb","2024-07-05T10:00:00Z","USB","7.15","first"\n'
        '"11111111-aaaa","2024-07-05T11:00:00Z","LSB","3.7","edited elsewhere"\n'
        '"","2024-07-05T12:00:00Z","AM","594","third"\n'
    )
    result = import_log(store, lambda: text, page=3)
    assert result.ok
    assert (result.accepted, result.duplicate) == (2, 1)
    assert result.page == 1
    assert store.count() == 3
    # Rows without a uuid get one, so a later re-import still matches
    assert all(e.uuid for e in store.all())
    assert import_log(store, lambda: text).accepted == 0


def test_import_missing_column_writes_nothing(store, make_entry):
    store.add(make_entry())
    text = '"timestamp","band","memo"\n"2024-07-05T10:00:00Z","USB","x"\n'
    result = import_log(store, lambda: text, page=2)
    assert not result.ok
    assert "frequency" in result.message
    assert result.accepted == 0
    assert result.page == 2
    assert store.count() == 1


def test_import_with_nothing_new_keeps_page(store, make_entry):
    store.add(make_entry(uuid="only"))
    outbox = Outbox()
    export_log(store, outbox)
    result = import_log(store, lambda: outbox.files[0][1], page=4)
    assert result.accepted == 0
    assert result.page == 4


def test_import_counts_invalid_rows(store):
    text = (
        "timestamp,band,frequency,memo\n"
        "2024-07-05T10:00:00Z,USB,7.1,ok\n"
        "whenever,USB,7.1,bad time\n"
        "2024-07-05T10:00:00Z,USB,7.1,ok\n"
    )
    result = import_log(store, lambda: text)
    assert (result.accepted, result.duplicate, result.rejected) == (1, 1, 1)
    assert "invalid" in result.message


def test_import_logs_ignored_columns(store, caplog):
    text = "timestamp,band,frequency,unit,station_notes\n2024-07-05T10:00:00Z,AM,594,kHz,x\n"
    with caplog.at_level(logging.INFO, logger="radio_memo.exchange"):
        result = import_log(store, lambda: text)
    assert result.accepted == 1
    assert "Ignored column(s): unit, station_notes" in caplog.text


def test_import_read_failure_is_reported(store):
    def broken():
        raise OSError("disk on fire")

    result = import_log(store, broken)
    assert not result.ok
    assert "disk on fire" in result.message


def test_submit_entry_resets_view(store):
    result = submit_entry(store, "usb", "7.1", "2024-07-04T12:00Z", callsign="k1abc", page=5)
    assert result.ok
    assert result.page == 1
    assert result.entry.id is not None
    assert store.count() == 1


def test_submit_entry_validation_error(store):
    result = submit_entry(store, "USB", "seven", page=2)
    assert not result.ok
    assert "frequency" in result.error
    assert result.page == 2
    assert store.count() == 0


def test_deleting_last_row_on_last_page_steps_back(store, make_entry):
    for i in range(11):
        store.add(make_entry(memo=f"m{i}", timestamp=datetime(2024, 1, 1, 0, i)))
    page = fetch_page(store, 2, 10)
    assert page.state.page == 2
    (only,) = page.entries

    result = delete_from_view(store, only.id, page.state)
    assert result.deleted
    assert result.page == 1
    assert fetch_page(store, result.page, 10).state.total_pages == 1


def test_delete_missing_id_is_harmless(store, make_entry):
    store.add(make_entry())
    state = fetch_page(store, 1, 10).state
    result = delete_from_view(store, 999, state)
    assert result.ok
    assert not result.deleted
    assert result.page == 1


def test_disk_collaborators_round_trip(store, make_entry, tmp_path):
    memos = ['comma, "quote"\nnewline', "line1\r\nline2", "bare\rreturn"]
    for i, memo in enumerate(memos):
        store.add(make_entry(memo=memo, timestamp=datetime(2024, 7, 4, 12, i)))
    out_dir = tmp_path / "exports"
    result = export_log(store, save_to_directory(out_dir))
    path = out_dir / result.filename
    assert path.read_bytes().startswith(b"\xef\xbb\xbf")
    assert b"line1\r\nline2" in path.read_bytes()

    fresh = LogStore(tmp_path / "fresh.sqlite3")
    fresh.open()
    try:
        imported = import_log(fresh, read_file(path))
        assert imported.accepted == 3
        assert sorted(e.memo for e in fresh.all()) == sorted(memos)
    finally:
        fresh.dispose()

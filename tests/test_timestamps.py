import datetime
import pathlib

import pytest

from phar_compiler.phar import PharArchive, PharError, SignatureAlgorithm, read_entries, read_manifest, verify_signature
from phar_compiler.timestamps import PharTimestamps


WHEN: datetime.datetime = datetime.datetime(2016, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)


def _write(path: pathlib.Path, now: int, monkeypatch: pytest.MonkeyPatch) -> bytes:
    monkeypatch.setattr("phar_compiler.phar.time.time", lambda: now)
    with PharArchive(path, alias="t.phar") as phar:
        phar.start_buffering()
        phar.add_from_string("a.php", b"<?php\n")
        phar.add_from_string("b.json", b"[]")
        phar.set_stub("<?php __HALT_COMPILER();")
        phar.stop_buffering()
    return path.read_bytes()


def test_update_timestamps_rewrites_every_entry(tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> None:
    out: pathlib.Path = tmp_path / "t.phar"
    _write(out, 1700000000, monkeypatch)

    util: PharTimestamps = PharTimestamps.from_path(out)
    util.update_timestamps(WHEN)
    util.save(out, SignatureAlgorithm.SHA1)

    data: bytes = out.read_bytes()
    assert {e.timestamp for e in read_manifest(data).entries} == {1451703845}
    assert verify_signature(data) is SignatureAlgorithm.SHA1
    assert [e.content for e in read_entries(data)] == [b"<?php\n", b"[]"]


def test_builds_at_different_times_converge(tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> None:
    first: bytes = _write(tmp_path / "1.phar", 1700000000, monkeypatch)
    second: bytes = _write(tmp_path / "2.phar", 1800000000, monkeypatch)
    assert first != second

    for name in ("1.phar", "2.phar"):
        util = PharTimestamps.from_path(tmp_path / name)
        util.update_timestamps(1451703845)
        util.save(tmp_path / name, SignatureAlgorithm.SHA1)

    assert (tmp_path / "1.phar").read_bytes() == (tmp_path / "2.phar").read_bytes()


def test_save_can_change_algorithm(tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> None:
    out: pathlib.Path = tmp_path / "t.phar"
    _write(out, 1700000000, monkeypatch)
    util = PharTimestamps.from_path(out)
    util.save(out, SignatureAlgorithm.SHA512)
    assert verify_signature(out.read_bytes()) is SignatureAlgorithm.SHA512


def test_naive_datetime_rejected(tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> None:
    out: pathlib.Path = tmp_path / "t.phar"
    _write(out, 1700000000, monkeypatch)
    with pytest.raises(PharError, match="Naive"):
        PharTimestamps.from_path(out).update_timestamps(datetime.datetime(2016, 1, 2))


def test_not_a_phar() -> None:
    with pytest.raises(PharError, match="stub's end"):
        PharTimestamps(b"plain text").update_timestamps(0)

import numpy as np
import pytest

from buddhabrot.engine.histogram import Histograms
from buddhabrot.output.snapshot import (
    IncompatibleSnapshotError,
    dumps,
    load_snapshot,
    loads,
    save_snapshot,
    snapshot_size,
)


@pytest.fixture
def histograms():
    rng = np.random.default_rng(5)
    counts = rng.integers(0, 2**40, size=(3, 6, 10), dtype=np.uint64)
    counts[2, 5, 9] = np.iinfo(np.uint64).max
    return Histograms(10, 6, counts)


def test_round_trip(tmp_path, histograms):
    path = str(tmp_path / "snap" / "visits.bin")
    save_snapshot(path, histograms)
    assert (tmp_path / "snap" / "visits.bin").stat().st_size == snapshot_size(10, 6)
    assert load_snapshot(path, 10, 6) == histograms


def test_layout_is_channel_then_row_major():
    counts = np.zeros((3, 2, 3), dtype=np.uint64)
    counts[1, 1, 2] = 7
    data = dumps(Histograms(3, 2, counts))
    index = 1 * 2 * 3 + 1 * 3 + 2
    assert data[index * 8:(index + 1) * 8] == (7).to_bytes(8, "little")
    assert data.count(b"\x00") == len(data) - 1


def test_loaded_histograms_are_writable(histograms):
    restored = loads(dumps(histograms), 10, 6)
    assert not restored.frozen
    restored.counts[0, 0, 0] += 1


def test_truncated_data_is_rejected(histograms):
    with pytest.raises(IncompatibleSnapshotError):
        loads(dumps(histograms)[:-8], 10, 6)


def test_dimension_mismatch_is_rejected(tmp_path, histograms):
    path = str(tmp_path / "visits.bin")
    save_snapshot(path, histograms)
    with pytest.raises(IncompatibleSnapshotError):
        load_snapshot(path, 12, 6)


def test_missing_file_is_rejected(tmp_path):
    with pytest.raises(IncompatibleSnapshotError):
        load_snapshot(str(tmp_path / "nope.bin"), 4, 4)

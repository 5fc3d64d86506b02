"""
Tests for the sliding-window scanner in bindscan/scanner.py.
"""

import pandas as pd
import pytest

import bindscan.scanner as scanner_module
from bindscan.errors import InvalidSequence
from bindscan.functions import batch_log_odds
from bindscan.io import read_matrices, read_sequences
from bindscan.models import BindingMatrix
from bindscan.scanner import MATCH_COLUMNS, Match, Scanner, count_windows, matches_to_frame, scan


def test_count_windows():
    """Test the number of complete windows"""
    assert count_windows(15, 4) == 12
    assert count_windows(4, 4) == 1
    assert count_windows(3, 4) == 0
    assert count_windows(0, 1) == 0


def test_scan_every_offset(simple_matrix):
    """Test that threshold 0 reports one match per offset with exact spans"""
    sequence = "AAAACGTACGTAAAA"

    matches = list(scan({"seq": sequence}, [simple_matrix], threshold=0))

    assert len(matches) == 12
    assert [m.start for m in matches] == list(range(1, 13))
    for m in matches:
        assert m.end == m.start + 3
        assert m.site == sequence[m.start - 1 : m.end]
        assert m.sequence_name == "seq"
        assert m.motif_name == "SIMPLE"
        assert m.strand == "+"
        assert 0.0 <= m.score <= 1.0


def test_scan_window_count_per_pair(simple_matrix, test_data_dir):
    """Test max(0, L - K + 1) candidates per pair in increasing offset order"""
    matrices = [simple_matrix] + read_matrices(test_data_dir / "ctcf.matrix")
    sequences = {"short": "ACG", "exact": "ACGA", "long": "ACGTACGTACGTACGTACGTACGT"}

    matches = list(scan(sequences, matrices, threshold=float("-inf")))

    for name, bases in sequences.items():
        for matrix in matrices:
            pair = [m for m in matches if m.sequence_name == name and m.motif_name == matrix.name]
            assert len(pair) == count_windows(len(bases), matrix.length)
            starts = [m.start for m in pair]
            assert starts == sorted(set(starts))


def test_scan_scores_match_relative_affinity(simple_matrix):
    """Test that scan scores equal the linear relative affinity of each window"""
    matches = list(scan({"seq": "TTACGATTGCGACAAC"}, [simple_matrix]))

    for m in matches:
        assert m.score == pytest.approx(simple_matrix.relative_affinity(m.site, linear=True), abs=1e-12)

    log_matches = list(scan({"seq": "TTACGATTGCGACAAC"}, [simple_matrix], linear=False))
    for m in log_matches:
        assert m.score == pytest.approx(simple_matrix.relative_affinity(m.site), abs=1e-12)


def test_scan_threshold_filters(simple_matrix):
    """Test that only windows at or above the threshold are reported"""
    matches = list(scan({"seq": "TTACGATT"}, [simple_matrix], threshold=0.999))

    assert len(matches) == 1
    assert (matches[0].start, matches[0].end, matches[0].site) == (3, 6, "ACGA")
    assert matches[0].score == pytest.approx(1.0)


def test_scan_motif_longer_than_sequence(simple_matrix):
    """Test that a too-short sequence yields nothing"""
    assert list(scan({"tiny": "ACG", "empty": ""}, [simple_matrix])) == []


def test_scan_traversal_order(simple_matrix):
    """Test sequences-then-matrices-then-offsets ordering"""
    other = BindingMatrix(name="TT", frequencies=[[0, 0], [0, 0], [0, 0], [3, 3]])
    sequences = {"b": "ACGATT", "a": "TTACGA"}

    matches = list(scan(sequences, [simple_matrix, other], threshold=float("-inf")))

    keys = [(m.sequence_name, m.motif_name) for m in matches]
    assert keys == [("b", "SIMPLE")] * 3 + [("b", "TT")] * 5 + [("a", "SIMPLE")] * 3 + [("a", "TT")] * 5


def test_scan_skips_invalid_windows(simple_matrix, caplog):
    """Test that non-ACGT windows are skipped and reported without stopping the scan"""
    sequences = {"gapped": "ACGTNNACGTACGT", "clean": "ACGA"}

    matches = list(scan(sequences, [simple_matrix]))

    gapped = [m.start for m in matches if m.sequence_name == "gapped"]
    assert gapped == [1, 7, 8, 9, 10, 11]
    assert [m.sequence_name for m in matches][-1] == "clean"
    assert "window CGTN at position 2" in caplog.text
    assert "skipped 5 window(s)" in caplog.text


def test_scan_raises_on_invalid_windows(simple_matrix):
    """Test that on_error='raise' surfaces InvalidSequence with context"""
    with pytest.raises(InvalidSequence, match="Sequence gapped: window CGTN at position 2"):
        list(scan({"gapped": "ACGTNNACGT"}, [simple_matrix], on_error="raise"))


def test_scan_limit(simple_matrix):
    """Test early termination after a number of matches"""
    matches = list(scan({"seq": "AAAACGTACGTAAAA"}, [simple_matrix], limit=3))

    assert [m.start for m in matches] == [1, 2, 3]
    assert list(scan({"seq": "AAAACGTACGTAAAA"}, [simple_matrix], limit=0)) == []


def test_scan_reverse_strand(simple_matrix):
    """Test reverse-strand hits report the site in matrix orientation"""
    forward = list(scan({"seq": "TTTCGTTT"}, [simple_matrix], threshold=0.999))
    assert forward == []

    reverse = list(scan({"seq": "TTTCGTTT"}, [simple_matrix], threshold=0.999, strand="-"))
    assert len(reverse) == 1
    assert (reverse[0].start, reverse[0].end, reverse[0].site, reverse[0].strand) == (3, 6, "ACGA", "-")


def test_scan_both_strands(simple_matrix):
    """Test that both strands are merged by offset"""
    matches = list(scan({"seq": "ACGATCGT"}, [simple_matrix], threshold=0.999, strand="both"))

    assert [(m.start, m.strand, m.site) for m in matches] == [(1, "+", "ACGA"), (5, "-", "ACGA")]
    assert matches[0].as_tuple() == ("seq", 1, 4, "SIMPLE", "ACGA", matches[0].score)
    assert matches[1].as_tuple()[-1] == "-"


def test_scan_parallel_equals_serial(test_data_dir):
    """Test that scoring matrices in parallel keeps results and order"""
    matrices = read_matrices(test_data_dir / "ctcf.matrix")
    sequences = read_sequences(test_data_dir / "ctcf_seqs.fa")

    serial = list(Scanner(matrices, n_jobs=1).scan(sequences))
    parallel = list(Scanner(matrices, n_jobs=2).scan(sequences))

    assert [(m.sequence_name, m.motif_name, m.start, m.site) for m in serial] == [
        (m.sequence_name, m.motif_name, m.start, m.site) for m in parallel
    ]
    assert [m.score for m in parallel] == pytest.approx([m.score for m in serial])


def test_scan_batches_keep_results_and_order(test_data_dir):
    """Test that the batch size does not change matches or their order"""
    matrices = read_matrices(test_data_dir / "ctcf.matrix")
    sequences = read_sequences(test_data_dir / "ctcf_seqs.fa")

    whole = list(Scanner(matrices, strand="both").scan(sequences))
    batched = list(Scanner(matrices, strand="both", batch_size=1).scan(sequences))

    assert batched == whole


def test_scan_limit_scores_only_first_batch(simple_matrix, monkeypatch):
    """Test that stopping at the limit leaves later batches unscored"""
    calls = []

    def spy(sequences, pwm):
        calls.append(sequences.num_sequences)
        return batch_log_odds(sequences, pwm)

    monkeypatch.setattr(scanner_module, "batch_log_odds", spy)
    sequences = {f"seq{i}": "ACGAACGA" for i in range(6)}

    matches = list(Scanner([simple_matrix, simple_matrix], limit=1, batch_size=2).scan(sequences))

    assert len(matches) == 1
    assert calls == [2, 2]


def test_scanner_rejects_bad_options(simple_matrix):
    """Test option validation"""
    with pytest.raises(ValueError):
        Scanner([simple_matrix], strand="x")
    with pytest.raises(ValueError):
        Scanner([simple_matrix], on_error="ignore")
    with pytest.raises(ValueError):
        Scanner([simple_matrix], limit=-1)
    with pytest.raises(ValueError):
        Scanner([simple_matrix], batch_size=0)


def test_scan_is_read_only(simple_matrix):
    """Test that scanning leaves inputs untouched"""
    sequences = {"seq": "acgaTT"}
    weights = simple_matrix.weights.copy()

    list(scan(sequences, [simple_matrix]))

    assert sequences == {"seq": "acgaTT"}
    assert (simple_matrix.weights == weights).all()


def test_matches_to_frame(simple_matrix):
    """Test DataFrame conversion"""
    frame = matches_to_frame(scan({"seq": "AAAACGTACGTAAAA"}, [simple_matrix]))

    assert isinstance(frame, pd.DataFrame)
    assert list(frame.columns) == MATCH_COLUMNS
    assert len(frame) == 12
    assert frame["start"].tolist() == list(range(1, 13))

    empty = matches_to_frame([])
    assert list(empty.columns) == MATCH_COLUMNS
    assert len(empty) == 0


def test_match_record():
    """Test the plain record form of a match"""
    match = Match("s", 2, 5, "m", "ACGA", 0.5)

    assert match.as_tuple() == ("s", 2, 5, "m", "ACGA", 0.5)


def test_scanner_scan_to_frame(simple_matrix):
    """Test the DataFrame shortcut on the scanner"""
    frame = Scanner([simple_matrix], threshold=0.999).scan_to_frame({"seq": "TTACGATT"})

    assert frame[["sequence", "start", "end", "site"]].values.tolist() == [["seq", 3, 6, "ACGA"]]

"""
scanner
=======

Slide every binding matrix over every sequence and report the windows whose
relative affinity reaches a threshold.

Sequences are scored in batches: each batch is packed into one ragged array
and scored per matrix with a JIT-compiled kernel (optionally one joblib
worker per matrix). Matches are emitted lazily in a fixed order: sequences as
given, matrices as given, offsets increasing. A batch is only scored once the
previous one has been consumed, so a match limit also bounds the work done.
"""

from __future__ import annotations

import logging
from dataclasses import astuple, dataclass
from typing import Dict, Iterator, List, Literal, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from bindscan.errors import InvalidSequence
from bindscan.functions import batch_log_odds, relative_affinity
from bindscan.io import ErrorMode
from bindscan.models import BindingMatrix
from bindscan.ragged import RaggedData, decode_codes, ragged_from_strings

StrandMode = Literal["+", "-", "both"]

DEFAULT_BATCH_SIZE = 256

MATCH_COLUMNS = ["sequence", "start", "end", "matrix", "site", "score", "strand"]


@dataclass(frozen=True)
class Match:
    """One window at or above the threshold. Coordinates are 1-based, inclusive."""

    sequence_name: str
    start: int
    end: int
    motif_name: str
    site: str
    score: float
    strand: str = "+"

    def as_tuple(self) -> tuple:
        """Output record; the strand column only appears for reverse-strand hits."""
        record = astuple(self)
        return record if self.strand != "+" else record[:-1]


def _rc_sequence(codes: np.ndarray) -> np.ndarray:
    """Return reverse complement of an encoded sequence."""
    rc_table = np.array([3, 2, 1, 0, 4], dtype=np.int8)
    return rc_table[codes[::-1]]


def count_windows(seq_len: int, motif_len: int) -> int:
    """Number of complete windows of ``motif_len`` in a sequence of ``seq_len``."""
    return max(0, seq_len - motif_len + 1)


def _score_matrix(
    matrix: BindingMatrix, sequences: RaggedData, linear: bool, strand: StrandMode
) -> Dict[str, RaggedData]:
    """Relative affinities of every window for the requested strand(s)."""
    scored = {}
    if strand in ("+", "both"):
        scored["+"] = matrix
    if strand in ("-", "both"):
        scored["-"] = matrix.reverse_complement()

    result = {}
    for key, oriented in scored.items():
        log_odds = batch_log_odds(sequences, oriented.weights)
        affinities = relative_affinity(log_odds.data, oriented.min_bind, oriented.max_bind, linear=linear)
        result[key] = RaggedData(np.asarray(affinities, dtype=np.float64), log_odds.offsets)
    return result


class Scanner:
    """
    Exhaustive sliding-window scan of sequences with binding matrices.
    """

    def __init__(
        self,
        matrices: Sequence[BindingMatrix],
        threshold: float = 0.0,
        linear: bool = True,
        strand: StrandMode = "+",
        n_jobs: int = 1,
        on_error: ErrorMode = "skip",
        limit: Optional[int] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        """
        Initialize scanner.

        Parameters
        ----------
        matrices : sequence of BindingMatrix
            Matrices applied to every sequence, in this order.
        threshold : float
            Minimum relative affinity for a window to be reported.
        linear : bool
            Score on the linear (exponentiated) scale instead of log-odds.
        strand : str
            '+' scans with the matrix as given, '-' with its reverse
            complement, 'both' with both.
        n_jobs : int
            Number of parallel jobs across matrices. -1 to use all cores.
        on_error : str
            'skip' logs windows with non-ACGT characters and continues,
            'raise' raises InvalidSequence on the first one.
        limit : int, optional
            Stop after this many matches.
        batch_size : int
            Number of sequences scored together in one kernel call.
        """
        if strand not in ("+", "-", "both"):
            raise ValueError(f"Invalid strand mode: {strand}")
        if on_error not in ("raise", "skip"):
            raise ValueError(f"on_error must be 'raise' or 'skip', got {on_error!r}")
        if limit is not None and limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.matrices = list(matrices)
        self.threshold = threshold
        self.linear = linear
        self.strand = strand
        self.n_jobs = n_jobs
        self.on_error = on_error
        self.limit = limit
        self.batch_size = batch_size
        self.logger = logging.getLogger(__name__)

    def _score_all(self, encoded: RaggedData) -> List[Dict[str, RaggedData]]:
        if self.n_jobs == 1 or len(self.matrices) < 2:
            return [_score_matrix(m, encoded, self.linear, self.strand) for m in self.matrices]
        return Parallel(n_jobs=self.n_jobs, backend="loky")(
            delayed(_score_matrix)(m, encoded, self.linear, self.strand) for m in self.matrices
        )

    def _report_invalid(self, name: str, matrix: BindingMatrix, codes: np.ndarray, bad: np.ndarray) -> None:
        first = int(bad[0])
        window = decode_codes(codes[first : first + matrix.length])
        message = (
            f"Sequence {name}: window {window} at position {first + 1} contains invalid characters "
            f"(only A, C, G, T accepted)"
        )
        if self.on_error == "raise":
            raise InvalidSequence(message)
        self.logger.warning(f"{message}; skipped {bad.size} window(s) for matrix {matrix.name}")

    def _pair_matches(
        self, name: str, bases: str, codes: np.ndarray, matrix: BindingMatrix, scores: Dict[str, np.ndarray]
    ) -> Iterator[Match]:
        """Matches for one (sequence, matrix) pair in increasing offset order."""
        any_scores = next(iter(scores.values()))
        bad = np.flatnonzero(np.isnan(any_scores))
        if bad.size:
            self._report_invalid(name, matrix, codes, bad)

        hits = {key: values >= self.threshold for key, values in scores.items()}
        mask = np.logical_or.reduce(list(hits.values()))
        width = matrix.length

        for offset in np.flatnonzero(mask):
            offset = int(offset)
            site = bases[offset : offset + width]
            for key in ("+", "-"):
                if key in hits and hits[key][offset]:
                    yield Match(
                        sequence_name=name,
                        start=offset + 1,
                        end=offset + width,
                        motif_name=matrix.name,
                        site=site if key == "+" else decode_codes(_rc_sequence(codes[offset : offset + width])),
                        score=float(scores[key][offset]),
                        strand=key,
                    )

    def scan(self, sequences: Mapping[str, str]) -> Iterator[Match]:
        """Yield matches for every sequence and matrix, in input order."""
        names = list(sequences.keys())

        self.logger.info(
            f"Scanning {len(names)} sequence(s) with {len(self.matrices)} matrix(es), "
            f"threshold={self.threshold}, strand={self.strand}"
        )
        if self.limit == 0:
            return

        emitted = 0
        for batch_start in range(0, len(names), self.batch_size):
            batch_names = names[batch_start : batch_start + self.batch_size]
            bases = [sequences[name].strip().upper() for name in batch_names]
            encoded = ragged_from_strings(bases)
            self.logger.debug(f"Scoring sequences {batch_start + 1}-{batch_start + len(batch_names)}")
            per_matrix = self._score_all(encoded)

            for seq_idx, name in enumerate(batch_names):
                codes = encoded.get_slice(seq_idx)
                for matrix, scored in zip(self.matrices, per_matrix):
                    scores = {key: ragged.get_slice(seq_idx) for key, ragged in scored.items()}
                    for match in self._pair_matches(name, bases[seq_idx], codes, matrix, scores):
                        yield match
                        emitted += 1
                        if self.limit is not None and emitted >= self.limit:
                            self.logger.info(f"Reached match limit of {self.limit}")
                            return

        self.logger.info(f"Found {emitted} match(es)")

    def scan_to_frame(self, sequences: Mapping[str, str]) -> pd.DataFrame:
        return matches_to_frame(self.scan(sequences))


def scan(
    sequences: Mapping[str, str],
    matrices: Sequence[BindingMatrix],
    threshold: float = 0.0,
    **kwargs,
) -> Iterator[Match]:
    """Functional form of ``Scanner(matrices, threshold, **kwargs).scan(sequences)``."""
    return Scanner(matrices, threshold=threshold, **kwargs).scan(sequences)


def matches_to_frame(matches) -> pd.DataFrame:
    """Collect matches into a DataFrame, keeping traversal order."""
    records = [astuple(m) for m in matches]
    return pd.DataFrame(records, columns=MATCH_COLUMNS)

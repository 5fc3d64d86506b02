"""
Binding Matrix Model
====================

An immutable container for one transcription-factor binding matrix.

The position frequency matrix is the only input; the log-odds weights, the
per-column information content and the score bounds are derived eagerly
when the object is built and can never go stale.  "Changing" the
frequencies returns a new object.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import Optional, Sequence, Union

import numpy as np

from bindscan.errors import InvalidSequence, InvalidThreshold, LengthMismatch, MalformedMatrix, OutOfRange
from bindscan.functions import (
    information_content,
    pfm_to_pwm,
    relative_affinity,
    reverse_complement_pfm,
    score_bounds,
    score_seq,
)
from bindscan.ragged import encode_string

BASES = "ACGT"
DEFAULT_IC_THRESHOLD = 1.5

_INVALID_BASE = re.compile(r"[^ACGT]")

Counts = Union[np.ndarray, Sequence[Sequence[float]]]


def _as_frequencies(counts: Counts) -> np.ndarray:
    """Validate a 4 x L count matrix and return it as a read-only float array."""
    try:
        pfm = np.array(counts, dtype=np.float64)
    except ValueError as e:
        raise MalformedMatrix(f"Frequencies are not a rectangular numeric matrix: {e}") from e

    if pfm.ndim != 2 or pfm.shape[0] != 4:
        raise MalformedMatrix(f"Expected 4 rows (A, C, G, T), got shape {pfm.shape}")
    if pfm.shape[1] == 0:
        raise MalformedMatrix("Frequency rows are empty")
    if not np.all(np.isfinite(pfm)):
        raise MalformedMatrix("Frequencies must be finite numbers")
    if np.any(pfm < 0):
        raise MalformedMatrix(f"Frequencies must be non-negative, got minimum {pfm.min()}")

    pfm.setflags(write=False)
    return pfm


@dataclass(frozen=True, eq=False)
class BindingMatrix:
    """Position frequency matrix plus everything derived from it.

    Attributes
    ----------
    name : str
        Matrix identifier (e.g. a JASPAR ID).
    frequencies : np.ndarray
        4 x L counts, rows ordered A, C, G, T.
    threshold : float, optional
        Minimum relative affinity suggested for this matrix. Carried as
        metadata only; scoring never reads it.
    weights : np.ndarray
        4 x L log-odds against a uniform background.
    information_content : np.ndarray
        Bits per column.
    min_bind, max_bind : float
        Lowest and highest achievable summed log-odds.
    """

    name: str
    frequencies: np.ndarray = dc_field(hash=False)
    threshold: Optional[float] = None
    weights: np.ndarray = dc_field(init=False, hash=False, repr=False)
    information_content: np.ndarray = dc_field(init=False, hash=False, repr=False)
    min_bind: float = dc_field(init=False, repr=False)
    max_bind: float = dc_field(init=False, repr=False)

    def __post_init__(self):
        if not self.name:
            raise MalformedMatrix("A binding matrix needs a name")

        pfm = _as_frequencies(self.frequencies)
        weights = pfm_to_pwm(pfm)
        weights.setflags(write=False)
        ic = information_content(pfm)
        ic.setflags(write=False)
        minimum, maximum = score_bounds(weights)

        object.__setattr__(self, "frequencies", pfm)
        object.__setattr__(self, "weights", weights)
        object.__setattr__(self, "information_content", ic)
        object.__setattr__(self, "min_bind", float(minimum))
        object.__setattr__(self, "max_bind", float(maximum))

        logger = logging.getLogger(__name__)
        logger.debug(f"Built matrix {self.name}: length={self.length}, bounds=[{minimum:.4f}, {maximum:.4f}]")

    def __hash__(self):
        return hash((self.name, self.length, self.frequencies.tobytes()))

    def __len__(self) -> int:
        return self.length

    @property
    def length(self) -> int:
        """Number of columns."""
        return int(self.frequencies.shape[1])

    def with_frequencies(self, counts: Counts) -> "BindingMatrix":
        """Return a copy built from new counts, with every derived value recomputed."""
        return BindingMatrix(name=self.name, frequencies=counts, threshold=self.threshold)

    def with_threshold(self, threshold: Optional[float]) -> "BindingMatrix":
        return BindingMatrix(name=self.name, frequencies=self.frequencies, threshold=threshold)

    def reverse_complement(self) -> "BindingMatrix":
        """The matrix as read on the opposite strand."""
        return BindingMatrix(
            name=self.name, frequencies=reverse_complement_pfm(self.frequencies), threshold=self.threshold
        )

    @property
    def frequencies_revcomp(self) -> str:
        """Reverse-complement PFM in bracketed JASPAR text."""
        from bindscan.io import format_matrix

        return format_matrix(self.reverse_complement())

    def consensus(self) -> str:
        """Highest-weight base per column."""
        return "".join(BASES[i] for i in np.argmax(self.weights, axis=0))

    def anti_consensus(self) -> str:
        """Lowest-weight base per column."""
        return "".join(BASES[i] for i in np.argmin(self.weights, axis=0))

    def is_position_informative(self, position: int, threshold: float = DEFAULT_IC_THRESHOLD) -> bool:
        """Whether the information content at a 1-based position reaches ``threshold`` bits."""
        if position is None or int(position) != position or position < 1 or position > self.length:
            raise OutOfRange(f"Position {position} out of bounds for matrix {self.name} of length {self.length}")
        position = int(position)
        if threshold is None:
            threshold = DEFAULT_IC_THRESHOLD
        if threshold < 0 or threshold > 2:
            raise InvalidThreshold(f"Information content threshold {threshold} outside [0, 2]")
        return bool(self.information_content[position - 1] >= threshold)

    def _encode(self, window: str) -> np.ndarray:
        """Validate a window and return its codes."""
        site = window.strip().upper() if window is not None else ""
        if not site:
            raise InvalidSequence("No sequence given")
        if _INVALID_BASE.search(site):
            raise InvalidSequence(f"Sequence {site} contains invalid characters: only A, C, G, T accepted")
        if len(site) != self.length:
            raise LengthMismatch(f"Sequence {site} does not have length {self.length}")
        return encode_string(site)

    def log_odds(self, window: str) -> float:
        """Summed log-odds weight of an exact-length window."""
        return float(score_seq(self._encode(window), self.weights))

    def relative_affinity(self, window: str, linear: bool = False) -> float:
        """Affinity of ``window`` relative to the best possible site.

        Returns 0.0 for the lowest-scoring window and 1.0 for the consensus.
        ``linear`` switches from the log-odds scale to the exponentiated
        (likelihood ratio) scale; values are comparable only within one mode.
        The window is read as given, in the matrix orientation, against a
        uniform background.
        """
        return relative_affinity(self.log_odds(window), self.min_bind, self.max_bind, linear=linear)

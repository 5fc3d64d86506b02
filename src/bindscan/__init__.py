"""
bindscan
==================

Score DNA windows against transcription-factor binding matrices and report
the candidate binding sites in a set of sequences.

A position frequency matrix (PFM) is converted to a log-odds position
weight matrix against a uniform background; every exact-length window is
scored and normalised to a relative affinity in [0, 1] between the worst
and the best possible site.

The top level modules expose the following key components:

``models``
    :class:`BindingMatrix`, an immutable matrix with its weights,
    information content, reverse complement and score bounds.

``io``
    Strict parsers for PFM text and FASTA-like sequence files, and writers
    for matrices and match tables.

``scanner``
    :class:`Scanner`, the exhaustive sliding-window scan producing
    :class:`Match` records.

``api``
    Single-call entry points built on a :class:`ScanConfig`.

``cli``
    The ``bindscan`` command line tool.
"""

from bindscan.api import ScanConfig, create_config, run_scan, scan_files
from bindscan.errors import (
    BindingMatrixError,
    InvalidSequence,
    InvalidThreshold,
    LengthMismatch,
    MalformedMatrix,
    OutOfRange,
)
from bindscan.io import parse_matrices, parse_matrix, parse_sequences, read_matrices, read_sequences
from bindscan.models import BindingMatrix
from bindscan.scanner import Match, Scanner, count_windows, matches_to_frame, scan

__all__ = [
    "BindingMatrix",
    "BindingMatrixError",
    "InvalidSequence",
    "InvalidThreshold",
    "LengthMismatch",
    "MalformedMatrix",
    "Match",
    "OutOfRange",
    "ScanConfig",
    "Scanner",
    "count_windows",
    "create_config",
    "matches_to_frame",
    "parse_matrices",
    "parse_matrix",
    "parse_sequences",
    "read_matrices",
    "read_sequences",
    "run_scan",
    "scan",
    "scan_files",
]

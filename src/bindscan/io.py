from __future__ import annotations

import logging
import math
import re
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Optional, TextIO, Tuple, Union

from bindscan.errors import BindingMatrixError, MalformedMatrix
from bindscan.models import BASES, BindingMatrix

DEFAULT_SEQUENCE_NAME = "SEQUENCE"
DEFAULT_MATRIX_PREFIX = "Matrix"

ErrorMode = Literal["raise", "skip"]

_TOKEN = re.compile(r"\[|\]|[^\s\[\],]+")


def _parse_row(line: str, line_no: int) -> Tuple[str, List[float]]:
    """Parse ``A [ 1 2 3 ]`` into its label and numbers."""
    tokens = _TOKEN.findall(line)
    if not tokens:
        raise MalformedMatrix(f"Line {line_no}: empty matrix row")

    label = tokens[0].upper()
    if len(label) != 1 or label not in BASES:
        raise MalformedMatrix(f"Line {line_no}: expected a row label A, C, G or T, got {tokens[0]!r}")

    body = tokens[1:]
    if body and body[0] == "[":
        if body[-1] != "]":
            raise MalformedMatrix(f"Line {line_no}: unclosed '[' in row {label}")
        body = body[1:-1]

    values = []
    for token in body:
        if token in ("[", "]"):
            raise MalformedMatrix(f"Line {line_no}: unexpected {token!r} in row {label}")
        try:
            value = float(token)
        except ValueError:
            raise MalformedMatrix(f"Line {line_no}: {token!r} in row {label} is not a number") from None
        if not math.isfinite(value) or value < 0:
            raise MalformedMatrix(f"Line {line_no}: {token!r} in row {label} is not a non-negative number")
        values.append(value)

    return label, values


def _build_matrix(
    header: Optional[str],
    rows: List[Tuple[int, str]],
    name: Optional[str] = None,
    threshold: Optional[float] = None,
    header_line: int = 0,
) -> BindingMatrix:
    """Assemble one matrix from its header and four numbered row lines."""
    first_line = rows[0][0] if rows else header_line
    if len(rows) != 4:
        raise MalformedMatrix(f"Line {first_line}: expected 4 rows (A, C, G, T), got {len(rows)}")

    parsed: Dict[str, List[float]] = {}
    for line_no, line in rows:
        label, values = _parse_row(line, line_no)
        if label in parsed:
            raise MalformedMatrix(f"Line {line_no}: duplicate row {label}")
        parsed[label] = values

    lengths = {label: len(values) for label, values in parsed.items()}
    if len(set(lengths.values())) != 1:
        raise MalformedMatrix(f"Line {first_line}: rows have unequal lengths {lengths}")

    matrix_name = name or header
    if not matrix_name:
        raise MalformedMatrix(f"Line {first_line}: matrix has no header and no name was given")

    return BindingMatrix(name=matrix_name, frequencies=[parsed[base] for base in BASES], threshold=threshold)


def _header_name(line: str) -> Optional[str]:
    """Name following '>' up to the first whitespace, or None if absent."""
    parts = line[1:].split()
    return parts[0] if parts else None


def _content_lines(text: str) -> List[Tuple[int, str]]:
    """Numbered non-blank, non-comment lines."""
    lines = []
    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if line and not line.startswith("#"):
            lines.append((line_no, line))
    return lines


def parse_matrix(text: str, name: Optional[str] = None, threshold: Optional[float] = None) -> BindingMatrix:
    """Parse a single PFM: an optional ``>NAME`` header and four labelled rows.

    ``name`` overrides the header. Raises MalformedMatrix on the first
    malformed token.
    """
    lines = _content_lines(text)
    header = None
    header_line = 0
    if lines and lines[0][1].startswith(">"):
        header_line = lines[0][0]
        header = _header_name(lines[0][1])
        lines = lines[1:]
    return _build_matrix(header, lines, name=name, threshold=threshold, header_line=header_line)


def parse_matrices(text: str, on_error: ErrorMode = "raise") -> List[BindingMatrix]:
    """Parse a file's worth of PFM blocks.

    Each block is an optional ``>NAME`` header followed by four rows. Blocks
    without a header are named ``Matrix1``, ``Matrix2``... after their
    1-based position in the file. With ``on_error="skip"`` malformed blocks
    are logged and dropped.
    """
    if on_error not in ("raise", "skip"):
        raise ValueError(f"on_error must be 'raise' or 'skip', got {on_error!r}")

    logger = logging.getLogger(__name__)
    lines = _content_lines(text)
    matrices = []
    position = 0
    i = 0

    while i < len(lines):
        position += 1
        header = None
        header_line = lines[i][0]
        if lines[i][1].startswith(">"):
            header = _header_name(lines[i][1])
            i += 1
        rows = []
        while i < len(lines) and len(rows) < 4 and not lines[i][1].startswith(">"):
            rows.append(lines[i])
            i += 1

        name = header or f"{DEFAULT_MATRIX_PREFIX}{position}"
        try:
            matrices.append(_build_matrix(header, rows, name=name, header_line=header_line))
        except BindingMatrixError as e:
            if on_error == "raise":
                raise
            logger.warning(f"Skipping matrix {name}: {e}")

    logger.info(f"Parsed {len(matrices)} matrix(es)")
    return matrices


def read_matrices(path: Union[str, Path], on_error: ErrorMode = "raise") -> List[BindingMatrix]:
    """Read every PFM block from a file."""
    with open(path, "r") as handle:
        return parse_matrices(handle.read(), on_error=on_error)


def parse_sequences(lines: Iterable[str]) -> Dict[str, str]:
    """Parse FASTA-like text into an ordered ``name -> bases`` mapping.

    A ``>NAME`` line starts a new record; data lines are stripped of all
    whitespace, upper-cased and concatenated. Data that precedes any header
    is filed under ``DEFAULT_SEQUENCE_NAME``. A repeated name replaces the
    earlier record.
    """
    logger = logging.getLogger(__name__)
    sequences: Dict[str, str] = {}
    name = None
    chunks: List[str] = []

    def flush():
        if name is None:
            return
        if name in sequences:
            logger.warning(f"Duplicate sequence name {name}; keeping the last record")
        sequences[name] = "".join(chunks)

    if isinstance(lines, str):
        lines = lines.splitlines()

    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        if line.startswith(">"):
            flush()
            name = _header_name(line) or DEFAULT_SEQUENCE_NAME
            chunks = []
        else:
            if name is None:
                name = DEFAULT_SEQUENCE_NAME
            chunks.append("".join(line.split()).upper())

    flush()
    return sequences


def read_sequences(path: Union[str, Path]) -> Dict[str, str]:
    """Read a FASTA-like file into an ordered ``name -> bases`` mapping."""
    with open(path, "r") as handle:
        sequences = parse_sequences(handle)
    logger = logging.getLogger(__name__)
    logger.info(f"Read {len(sequences)} sequence(s) from {path}")
    return sequences


def format_matrix(matrix: BindingMatrix) -> str:
    """Render a matrix as a ``>NAME`` header and bracketed A/C/G/T rows."""

    def fmt(value: float) -> str:
        return str(int(value)) if float(value).is_integer() else repr(float(value))

    lines = [f">{matrix.name}"]
    for base, row in zip(BASES, matrix.frequencies):
        lines.append(f"{base} [ " + "\t".join(fmt(v) for v in row) + " ]")
    return "\n".join(lines) + "\n"


def write_matrices(matrices: Iterable[BindingMatrix], path: Union[str, Path]) -> None:
    """Write matrices in the bracketed format read by ``read_matrices``."""
    with open(path, "w") as out:
        for matrix in matrices:
            out.write(format_matrix(matrix))


def format_match(match) -> str:
    """Tab-separated record: sequence, start, end, matrix, site, score[, strand]."""
    return "\t".join(f"{v:.15g}" if isinstance(v, float) else str(v) for v in match.as_tuple())


def write_matches(matches: Iterable, handle: TextIO) -> int:
    """Stream matches to ``handle`` one per line; return how many were written."""
    count = 0
    for match in matches:
        handle.write(format_match(match) + "\n")
        count += 1
    return count

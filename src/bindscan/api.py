"""High-level public API for scanning sequences with binding matrices."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Union

from bindscan.io import ErrorMode, parse_matrices, read_matrices, read_sequences
from bindscan.models import BindingMatrix
from bindscan.scanner import DEFAULT_BATCH_SIZE, Match, Scanner, StrandMode

MatrixRef = Union[BindingMatrix, str, Path]
MatrixSource = Union[MatrixRef, Sequence[MatrixRef]]
SequenceRef = Union[Mapping[str, str], str, Path]


@dataclass
class ScanConfig:
    """Unified configuration object for library usage."""

    matrices: MatrixSource
    sequences: SequenceRef
    threshold: float = 0.0
    linear: bool = True
    strand: StrandMode = "+"
    n_jobs: int = 1
    limit: Optional[int] = None
    on_error: ErrorMode = "skip"
    matrix_names: List[str] = field(default_factory=list)
    batch_size: int = DEFAULT_BATCH_SIZE


def create_config(
    matrices: MatrixSource,
    sequences: SequenceRef,
    threshold: float = 0.0,
    linear: bool = True,
    strand: StrandMode = "+",
    n_jobs: int = 1,
    limit: Optional[int] = None,
    on_error: ErrorMode = "skip",
    matrix_names: Optional[List[str]] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> ScanConfig:
    """Build a scan config.

    ``matrix_names`` restricts the scan to the named matrices.
    """
    return ScanConfig(
        matrices=matrices,
        sequences=sequences,
        threshold=threshold,
        linear=linear,
        strand=strand,
        n_jobs=n_jobs,
        limit=limit,
        on_error=on_error,
        matrix_names=matrix_names or [],
        batch_size=batch_size,
    )


def run_scan(config: ScanConfig) -> List[Match]:
    """Execute a scan described by ``config`` and return the matches in traversal order."""
    matrices = _resolve_matrices(config.matrices, config.on_error)
    if config.matrix_names:
        wanted = set(config.matrix_names)
        missing = wanted - {m.name for m in matrices}
        if missing:
            raise ValueError(f"Unknown matrix name(s): {sorted(missing)}")
        matrices = [m for m in matrices if m.name in wanted]

    sequences = _resolve_sequences(config.sequences)
    scanner = Scanner(
        matrices,
        threshold=config.threshold,
        linear=config.linear,
        strand=config.strand,
        n_jobs=config.n_jobs,
        on_error=config.on_error,
        limit=config.limit,
        batch_size=config.batch_size,
    )
    return list(scanner.scan(sequences))


def scan_files(
    matrix_path: Union[str, Path], sequence_path: Union[str, Path], threshold: float = 0.0, **kwargs
) -> List[Match]:
    """Single-call entry point: scan a sequence file with a matrix file."""
    return run_scan(create_config(Path(matrix_path), Path(sequence_path), threshold=threshold, **kwargs))


def _resolve_matrices(source: MatrixSource, on_error: ErrorMode) -> List[BindingMatrix]:
    """Convert matrix references (objects, files or PFM text) to BindingMatrix objects."""
    if isinstance(source, (BindingMatrix, str, Path)):
        source = [source]

    matrices = []
    for ref in source:
        if isinstance(ref, BindingMatrix):
            matrices.append(ref)
        elif isinstance(ref, Path) or (isinstance(ref, str) and "\n" not in ref):
            path = Path(ref)
            if not path.exists():
                raise FileNotFoundError(f"Matrix file not found: {path}")
            matrices.extend(read_matrices(path, on_error=on_error))
        elif isinstance(ref, str):
            matrices.extend(parse_matrices(ref, on_error=on_error))
        else:
            raise TypeError(f"Unsupported matrix reference type: {type(ref)!r}")
    return matrices


def _resolve_sequences(source: SequenceRef) -> Mapping[str, str]:
    """Resolve a sequence source to a name -> bases mapping."""
    if isinstance(source, Mapping):
        return source
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Sequence file not found: {path}")
        return read_sequences(path)
    raise TypeError(f"Unsupported sequence source type: {type(source)!r}")

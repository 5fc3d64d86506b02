from typing import Iterable, List

import numpy as np

# A=0 C=1 G=2 T=3, everything else 4.
INVALID_CODE = 4

_ENCODE_TABLE = bytearray([INVALID_CODE] * 256)
for _char, _code in zip(b"ACGTacgt", [0, 1, 2, 3] * 2):
    _ENCODE_TABLE[_char] = _code

_DECODER = np.array(["A", "C", "G", "T", "N"], dtype="U1")


class RaggedData:
    """
    Variable-length arrays stored back to back.

    ``data`` holds every element, ``offsets[i]:offsets[i + 1]`` delimits
    the i-th entry.  Encoded sequences and the per-window scores of a scan
    share this layout, so scoring a whole sequence collection is a single
    kernel call.
    """

    def __init__(self, data: np.ndarray, offsets: np.ndarray):
        self.data = data
        self.offsets = offsets

    def get_length(self, i: int) -> int:
        """Return the length of the i-th entry."""
        return int(self.offsets[i + 1] - self.offsets[i])

    def get_slice(self, i: int) -> np.ndarray:
        """Return the i-th entry (view, no copy)."""
        return self.data[self.offsets[i] : self.offsets[i + 1]]

    @property
    def num_sequences(self) -> int:
        return self.offsets.size - 1


def encode_string(bases: str) -> np.ndarray:
    """Encode a nucleotide string as int8 codes."""
    raw = bases.encode("ascii", errors="replace")
    return np.frombuffer(raw.translate(_ENCODE_TABLE), dtype=np.int8).copy()


def decode_codes(codes: np.ndarray) -> str:
    """Turn int8 codes back into an ACGT(N) string."""
    return "".join(_DECODER[np.clip(codes, 0, INVALID_CODE)])


def ragged_from_list(data_list: List[np.ndarray], dtype=None) -> RaggedData:
    """Create RaggedData from a list of numpy arrays."""
    if len(data_list) == 0:
        return RaggedData(np.empty(0, dtype=dtype if dtype else np.int8), np.zeros(1, dtype=np.int64))

    if dtype is None:
        dtype = data_list[0].dtype

    lengths = np.fromiter((len(item) for item in data_list), dtype=np.int64, count=len(data_list))
    offsets = np.zeros(len(data_list) + 1, dtype=np.int64)
    offsets[1:] = np.cumsum(lengths)

    data = np.empty(offsets[-1], dtype=dtype)
    for i, item in enumerate(data_list):
        data[offsets[i] : offsets[i + 1]] = item

    return RaggedData(data, offsets)


def ragged_from_strings(sequences: Iterable[str]) -> RaggedData:
    """Encode nucleotide strings into one RaggedData of int8 codes."""
    return ragged_from_list([encode_string(seq) for seq in sequences], dtype=np.int8)

from typing import List, Sequence

import numpy as np

from seqmix.functions import batch_reverse_complement

# A=0 C=1 G=2 T=3, ambiguous symbols (N=4) map onto themselves.
RC_TABLE = np.array([3, 2, 1, 0, 4], dtype=np.int8)


class RaggedData:
    """
    Class for storing ragged (variable-length) integer-encoded sequences.

    Uses a flattened representation (data + offsets) for memory efficiency and fast access.
    Sequence ``i`` occupies ``data[offsets[i]:offsets[i + 1]]``, so a dataset of
    sequences with different lengths needs neither padding nor a Python list of arrays.
    """

    def __init__(self, data: np.ndarray, offsets: np.ndarray):
        """Initialize the RaggedData object."""
        self.data = data
        self.offsets = offsets

    def get_length(self, i: int) -> int:
        """Return the length of the i-th sequence."""
        return int(self.offsets[i + 1] - self.offsets[i])

    def get_slice(self, i: int) -> np.ndarray:
        """Return a slice of data for the i-th sequence (view)."""
        return self.data[self.offsets[i] : self.offsets[i + 1]]

    def total_elements(self) -> int:
        """Return the total number of elements across all sequences."""
        return self.data.size

    @property
    def num_sequences(self) -> int:
        """Return the number of sequences."""
        return self.offsets.size - 1

    @property
    def lengths(self) -> np.ndarray:
        """Return the lengths of all sequences."""
        return np.diff(self.offsets)

    def select(self, indices: Sequence[int]) -> "RaggedData":
        """Return a new RaggedData holding copies of the selected sequences."""
        return ragged_from_list([self.get_slice(i) for i in indices], dtype=self.data.dtype)

    def __len__(self) -> int:
        return self.num_sequences

    def __iter__(self):
        for i in range(self.num_sequences):
            yield self.get_slice(i)


def ragged_from_list(data_list: List[np.ndarray], dtype=None) -> RaggedData:
    """Create RaggedData from a list of numpy arrays."""
    if len(data_list) == 0:
        return RaggedData(np.empty(0, dtype=dtype if dtype else np.int8), np.zeros(1, dtype=np.int64))

    if dtype is None:
        dtype = np.asarray(data_list[0]).dtype

    n = len(data_list)
    lengths = np.empty(n, dtype=np.int64)
    for i in range(n):
        lengths[i] = len(data_list[i])

    offsets = np.zeros(n + 1, dtype=np.int64)
    offsets[1:] = np.cumsum(lengths)

    data = np.empty(offsets[-1], dtype=dtype)
    for i in range(n):
        data[offsets[i] : offsets[i + 1]] = data_list[i]

    return RaggedData(data, offsets)


def concat_ragged(parts: List[RaggedData]) -> RaggedData:
    """Concatenate several RaggedData objects preserving sequence order."""
    sequences = [seq for part in parts for seq in part]
    return ragged_from_list(sequences, dtype=np.int8)


def reverse_complement(seq: np.ndarray) -> np.ndarray:
    """Return the reverse complement of a single integer-encoded DNA sequence."""
    return RC_TABLE[np.asarray(seq)[::-1]]


def reverse_complement_all(sequences: RaggedData) -> RaggedData:
    """Return the reverse complement of every sequence, keeping the order."""
    return RaggedData(batch_reverse_complement(sequences.data, sequences.offsets), sequences.offsets.copy())


def interleave_strands(sequences: RaggedData) -> RaggedData:
    """Double a dataset into ``seq_0, rc(seq_0), seq_1, rc(seq_1), ...``."""
    doubled = []
    for seq in sequences:
        doubled.append(seq)
        doubled.append(reverse_complement(seq))
    return ragged_from_list(doubled, dtype=np.int8)

"""
chains
======

Disk-backed trajectories of Gibbs sampling chains. Every chain owns one
append-only temporary file with one line per sampling step::

    <step>\t<value_0>\t<value_1>...

Values are written with ``repr`` so that a replayed sample is bit-identical
to the sample that was drawn. A chain is either written (after ``extend``)
or replayed (after ``replay``), never both at the same time.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

CHAIN_PREFIX = "pi-"
CHAIN_SUFFIX = ".dat"


def _parse_line(line: str) -> tuple[int, np.ndarray]:
    parts = line.rstrip("\n").split("\t")
    return int(parts[0]), np.array([float(v) for v in parts[1:] if v], dtype=np.float64)


class ChainStore:
    """
    Owner of the trajectory files of all chains of one sampler.

    Parameters
    ----------
    directory : str, optional
        Directory for the temporary files, the system default if None.

    Attributes
    ----------
    counter : numpy.ndarray
        Number of steps written per chain; also the step number of the next line.
    index : int
        Chain that is currently open for writing (or was last), -1 before sampling.
    """

    def __init__(self, directory: Optional[str] = None):
        self.directory = directory
        self.paths: List[Optional[str]] = []
        self.counter = np.zeros(0, dtype=np.int64)
        self.index = -1
        self._writer = None
        self._reader = None

    @property
    def starts(self) -> int:
        return len(self.paths)

    @property
    def is_writing(self) -> bool:
        return self._writer is not None

    def _new_file(self) -> str:
        handle, path = tempfile.mkstemp(prefix=CHAIN_PREFIX, suffix=CHAIN_SUFFIX, dir=self.directory)
        os.close(handle)
        return path

    def _close_reader(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None

    def init_for_sampling(self, starts: int) -> None:
        """Prepare ``starts`` empty chains, reusing existing files when the number matches."""
        self.stop()
        self._close_reader()
        if self.starts == starts:
            for path in self.paths:
                if path is not None:
                    open(path, "w").close()
        else:
            self._delete_files()
            self.paths = [None] * starts
        self.counter = np.zeros(starts, dtype=np.int64)
        self.index = -1

    def extend(self, chain: int, append: bool = True) -> Optional[np.ndarray]:
        """
        Open ``chain`` for writing.

        Returns the most recent sample of the chain (None for an empty chain) so
        that the caller can restore its in-memory state before it goes on sampling.
        With ``append=False`` the chain is truncated first.
        """
        self.stop()
        last = None
        if self.paths[chain] is None:
            self.paths[chain] = self._new_file()
        elif not append:
            open(self.paths[chain], "w").close()
            self.counter[chain] = 0
        elif self.counter[chain] > 0:
            last = self.replay(chain, int(self.counter[chain]) - 1)
        self._close_reader()
        self._writer = open(self.paths[chain], "a")
        self.index = chain
        return last

    def append(self, values: Sequence[float]) -> None:
        """Write one sample of the current chain and advance its step counter."""
        if self._writer is None:
            raise RuntimeError("No chain is open for writing")
        step = int(self.counter[self.index])
        self._writer.write(f"{step}\t" + "\t".join(repr(float(v)) for v in values) + "\n")
        self._writer.flush()
        self.counter[self.index] += 1

    def stop(self) -> None:
        """Close the chain that is open for writing, if any."""
        if self._writer is not None:
            self._writer.close()
            self._writer = None

    def replay(self, chain: int, step: int) -> Optional[np.ndarray]:
        """Position the reader of ``chain`` at ``step`` and return that sample (None if absent)."""
        if self._writer is not None and self.index == chain:
            raise RuntimeError(f"Chain {chain} is open for writing and can not be replayed")
        self._close_reader()
        if chain >= self.starts or self.paths[chain] is None:
            return None
        self._reader = open(self.paths[chain], "r")
        line = self._reader.readline()
        while line:
            current, values = _parse_line(line)
            if current == step:
                return values
            line = self._reader.readline()
        return None

    def next_values(self) -> Optional[np.ndarray]:
        """Return the sample following the last replayed one (None at the end of the chain)."""
        if self._reader is None:
            return None
        line = self._reader.readline()
        if not line:
            return None
        return _parse_line(line)[1]

    def contents(self) -> List[str]:
        """Return the full text of every chain file ("" for chains without a file)."""
        if self._writer is not None:
            self._writer.flush()
        out = []
        for path in self.paths:
            if path is None:
                out.append("")
            else:
                with open(path, "r") as handle:
                    out.append(handle.read())
        return out

    def restore(self, counter: Sequence[int], contents: Sequence[str]) -> None:
        """Re-materialize chains from serialized content as fresh temporary files."""
        self.close()
        self.counter = np.asarray(counter, dtype=np.int64).copy()
        self.paths = []
        for content in contents:
            if content:
                path = self._new_file()
                with open(path, "w") as handle:
                    handle.write(content)
                self.paths.append(path)
            else:
                self.paths.append(None)

    def to_frame(self, chain: int, columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """Return the trajectory of ``chain`` as a DataFrame with a ``step`` column."""
        if self._writer is not None and self.index == chain:
            self._writer.flush()
        path = self.paths[chain] if chain < self.starts else None
        if path is None or os.path.getsize(path) == 0:
            return pd.DataFrame(columns=["step"] + list(columns or []))
        frame = pd.read_csv(path, sep="\t", header=None, float_precision="round_trip")
        n_values = frame.shape[1] - 1
        names = list(columns) if columns is not None else [f"value_{i}" for i in range(n_values)]
        if len(names) != n_values:
            raise ValueError(f"Chain {chain} holds {n_values} values per step, got {len(names)} column names")
        frame.columns = ["step"] + names
        return frame

    def _delete_files(self) -> None:
        for path in self.paths:
            if path is not None and os.path.exists(path):
                os.remove(path)

    def close(self) -> None:
        """Close every handle and delete the chain files."""
        self.stop()
        self._close_reader()
        self._delete_files()
        if self.paths:
            logger = logging.getLogger(__name__)
            logger.debug(f"Deleted {sum(p is not None for p in self.paths)} chain file(s)")
        self.paths = []
        self.counter = np.zeros(0, dtype=np.int64)
        self.index = -1

    def __enter__(self) -> "ChainStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __deepcopy__(self, memo) -> "ChainStore":
        if self._writer is not None:
            self._writer.flush()
        clone = ChainStore(self.directory)
        clone.counter = self.counter.copy()
        clone.index = self.index
        for path in self.paths:
            if path is None:
                clone.paths.append(None)
            else:
                copied = clone._new_file()
                shutil.copyfile(path, copied)
                clone.paths.append(copied)
        memo[id(self)] = clone
        return clone

    def __getstate__(self) -> dict:
        state = self.__dict__.copy()
        state["_writer"] = None
        state["_reader"] = None
        return state

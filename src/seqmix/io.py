from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Tuple, Union

import joblib
import numpy as np

# Imported for their registrations so that every model type can be loaded.
import seqmix.mixture  # noqa: F401
import seqmix.models  # noqa: F401
import seqmix.strand  # noqa: F401
from seqmix.components import ComponentModel
from seqmix.ragged import RaggedData, ragged_from_list
from seqmix.registry import model_registry

DECODER = np.array(["A", "C", "G", "T", "N"], dtype="U1")


def _encode(sequence: bytearray, trans_table: bytearray) -> np.ndarray:
    if not sequence:
        return np.empty(0, dtype=np.int8)
    return np.frombuffer(sequence.translate(trans_table), dtype=np.int8).copy()


def read_fasta(path: str | Path, with_names: bool = False) -> Union[RaggedData, Tuple[RaggedData, List[str]]]:
    """Read a FASTA file and return integer-encoded sequences (and their names)."""

    trans_table = bytearray([4] * 256)
    for char, code in zip(b"ACGTacgt", [0, 1, 2, 3] * 2, strict=False):
        trans_table[char] = code

    sequences: List[np.ndarray] = []
    names: List[str] = []

    with open(path, "r") as handle:
        current_seq_bytes = bytearray()
        for line in handle:
            line = line.strip()
            if not line:
                continue
            if line.startswith(">"):
                if names:
                    sequences.append(_encode(current_seq_bytes, trans_table))
                    current_seq_bytes.clear()
                names.append(line[1:].strip())
            else:
                current_seq_bytes.extend(line.encode("ascii", errors="ignore"))

        if names:
            sequences.append(_encode(current_seq_bytes, trans_table))

    logger = logging.getLogger(__name__)
    logger.debug(f"Read {len(sequences)} sequence(s) from {path}")
    data = ragged_from_list(sequences, dtype=np.int8)
    if with_names:
        return data, names
    return data


def write_fasta(sequences: Union[RaggedData, Iterable[np.ndarray]], path: str | Path, names=None) -> None:
    """Write integer-encoded sequences to a FASTA file."""

    with open(path, "w") as out:
        for idx, seq_int in enumerate(sequences):
            safe_seq = np.clip(seq_int, 0, 4)
            seq_str = "".join(DECODER[safe_seq])
            name = names[idx] if names is not None else idx
            out.write(f">{name}\n")
            out.write(f"{seq_str}\n")


def save_model(model: ComponentModel, path: str | Path) -> None:
    """Persist a model (including its Gibbs chains) with joblib."""
    directory = os.path.dirname(os.fspath(path))
    if directory:
        os.makedirs(directory, exist_ok=True)
    joblib.dump(model.to_record(), path)
    logger = logging.getLogger(__name__)
    logger.info(f"Saved {type(model).__name__} to {path}")


def load_model(path: str | Path) -> ComponentModel:
    """Load a model written by ``save_model``."""
    return model_registry.from_record(joblib.load(path))

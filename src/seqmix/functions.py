import numpy as np
from numba import njit, prange


@njit(cache=True)
def log_sum_normalize(values):
    """Normalize log-values in place to probabilities and return their log-sum.

    A vector that is entirely ``-inf`` becomes uniform and ``-inf`` is returned.
    """
    n = values.shape[0]
    m = -np.inf
    for i in range(n):
        if values[i] > m:
            m = values[i]

    if m == -np.inf:
        for i in range(n):
            values[i] = 1.0 / n
        return -np.inf

    total = 0.0
    for i in range(n):
        values[i] = np.exp(values[i] - m)
        total += values[i]
    for i in range(n):
        values[i] /= total

    return m + np.log(total)


@njit(cache=True)
def draw_index(w, u):
    """Draw a categorical index from probabilities ``w`` given a uniform variate ``u``."""
    n = w.shape[0]
    i = 0
    p = u
    while i < n and p > w[i]:
        p -= w[i]
        i += 1
    if i == n:
        i -= 1
    return i


@njit(fastmath=True, cache=True)
def weighted_position_counts(data, offsets, weights, length, alphabet_size):
    """Accumulate weighted symbol counts per position; ambiguous symbols are skipped."""
    n_seq = offsets.shape[0] - 1
    counts = np.zeros((length, alphabet_size), dtype=np.float64)
    for i in range(n_seq):
        w = weights[i]
        if w == 0.0:
            continue
        start = offsets[i]
        seq_len = offsets[i + 1] - start
        if seq_len > length:
            seq_len = length
        for j in range(seq_len):
            s = data[start + j]
            if s < alphabet_size:
                counts[j, s] += w
    return counts


@njit(parallel=True, cache=True)
def batch_log_probs(data, offsets, log_table):
    """Score every sequence with a position-specific log-probability table.

    ``log_table`` has shape ``(length, alphabet_size + 1)``; the extra last column
    holds the score of ambiguous symbols.
    """
    n_seq = offsets.shape[0] - 1
    length = log_table.shape[0]
    ambiguous = log_table.shape[1] - 1
    results = np.zeros(n_seq, dtype=np.float64)

    for i in prange(n_seq):
        start = offsets[i]
        seq_len = offsets[i + 1] - start
        if seq_len > length:
            seq_len = length
        score = 0.0
        for j in range(seq_len):
            s = data[start + j]
            if s >= ambiguous:
                s = ambiguous
            score += log_table[j, s]
        results[i] = score

    return results


@njit(parallel=True, cache=True)
def batch_reverse_complement(data, offsets):
    """Reverse-complement every sequence of a flattened dataset; ambiguous symbols are kept."""
    n_seq = offsets.shape[0] - 1
    out = np.empty_like(data)
    for i in prange(n_seq):
        start = offsets[i]
        end = offsets[i + 1]
        for j in range(end - start):
            val = data[end - 1 - j]
            out[start + j] = 3 - val if val < 4 else val
    return out

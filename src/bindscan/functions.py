import numpy as np
from numba import njit, prange

from bindscan.ragged import RaggedData

PSEUDOCOUNT = 0.1
BACKGROUND = 0.25


def column_frequencies(pfm: np.ndarray, pseudo: float = PSEUDOCOUNT) -> np.ndarray:
    """Per-column base frequencies with a constant pseudocount."""
    totals = pfm.sum(axis=0)
    return (pfm + pseudo) / (totals + 4 * pseudo)


def pfm_to_pwm(pfm: np.ndarray, pseudo: float = PSEUDOCOUNT) -> np.ndarray:
    """Convert Position Frequency Matrix to log-odds Position Weight Matrix."""
    return np.log(column_frequencies(pfm, pseudo) / BACKGROUND)


def information_content(pfm: np.ndarray, pseudo: float = PSEUDOCOUNT) -> np.ndarray:
    """Per-column information content in bits (0 for uniform, 2 for a single base)."""
    freqs = column_frequencies(pfm, pseudo)
    return 2.0 + (freqs * np.log2(freqs)).sum(axis=0)


def reverse_complement_pfm(pfm: np.ndarray) -> np.ndarray:
    """Reverse column order and swap A<->T, C<->G.

    With rows ordered A, C, G, T the complement is a row reversal.
    """
    return pfm[::-1, ::-1].copy()


@njit(cache=True)
def score_bounds(pwm):
    """Minimum and maximum achievable log-odds, summed column by column."""
    minimum = 0.0
    maximum = 0.0
    for i in range(pwm.shape[1]):
        col_min = pwm[0, i]
        col_max = pwm[0, i]
        for b in range(1, pwm.shape[0]):
            if pwm[b, i] < col_min:
                col_min = pwm[b, i]
            if pwm[b, i] > col_max:
                col_max = pwm[b, i]
        minimum += col_min
        maximum += col_max
    return minimum, maximum


@njit(cache=True)
def score_seq(num_site, pwm):
    """Summed log-odds of an encoded window; NaN if it holds a non-ACGT code."""
    score = 0.0
    for i in range(pwm.shape[1]):
        code = num_site[i]
        if code < 0 or code >= 4:
            return np.nan
        score += pwm[code, i]
    return score


@njit(parallel=True, cache=True)
def _batch_log_odds_jit(data, offsets, pwm):
    """Log-odds of every window of every sequence."""
    n_seq = len(offsets) - 1
    m = pwm.shape[1]

    new_offsets = np.zeros(n_seq + 1, dtype=np.int64)
    for i in range(n_seq):
        seq_len = offsets[i + 1] - offsets[i]
        if seq_len >= m:
            new_offsets[i + 1] = seq_len - m + 1

    for i in range(n_seq):
        new_offsets[i + 1] += new_offsets[i]

    results = np.empty(new_offsets[n_seq], dtype=np.float64)

    for i in prange(n_seq):
        start = offsets[i]
        out_start = new_offsets[i]
        n_scores = new_offsets[i + 1] - out_start
        for k in range(n_scores):
            results[out_start + k] = score_seq(data[start + k : start + k + m], pwm)

    return results, new_offsets


def batch_log_odds(sequences: RaggedData, pwm: np.ndarray) -> RaggedData:
    """Score all windows of all sequences; invalid windows come back as NaN."""
    data, offsets = _batch_log_odds_jit(sequences.data, sequences.offsets, np.ascontiguousarray(pwm, dtype=np.float64))
    return RaggedData(data, offsets)


def relative_affinity(log_odds, min_bind: float, max_bind: float, linear: bool = False):
    """Normalise raw log-odds to [0, 1] between the matrix score bounds.

    The linear form ``(e^lo - e^min) / (e^max - e^min)`` is evaluated after
    dividing through by ``e^max``.  A matrix whose bounds coincide scores
    every window as 1.0.
    """
    log_odds = np.asarray(log_odds, dtype=np.float64)
    if max_bind == min_bind:
        result = np.where(np.isnan(log_odds), np.nan, 1.0)
    elif linear:
        floor = np.exp(min_bind - max_bind)
        result = np.clip((np.exp(log_odds - max_bind) - floor) / (1.0 - floor), 0.0, 1.0)
    else:
        result = (log_odds - min_bind) / (max_bind - min_bind)
    if result.ndim == 0:
        return float(result)
    return result

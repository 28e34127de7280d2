#!/usr/bin/env python3
"""
Hidden repeat detection by periodic consensus scoring.

The sequence is cut into fixed-size windows, each window gets a consensus
word of length k and a combined significance score, and adjacent windows
are then merged:
1. Consecutive windows with the same consensus word are coalesced
2. A weak window between two strong windows is bridged into the left one
"""

import math
from dataclasses import dataclass, replace
from typing import List, Sequence, Tuple

import numpy as np


DNA_ALPHABET = 'ACGT'


@dataclass(frozen=True)
class RepeatConfig:
    """Tunable parameters of the detection pipeline."""
    window_length: int = 12
    word_length: int = 3
    weak_threshold: float = 0.1
    strong_threshold: float = 0.01
    symbol_probability: float = 0.25
    alphabet: str = DNA_ALPHABET
    pvalue_floor: float = 1e-300

    def validate(self):
        """Raise ValueError if the parameters cannot drive the pipeline."""
        if self.window_length < 1:
            raise ValueError(f"window_length must be positive, got {self.window_length}")
        if self.word_length < 1:
            raise ValueError(f"word_length must be positive, got {self.word_length}")
        if not 0.0 < self.symbol_probability < 1.0:
            raise ValueError(f"symbol_probability must be in (0, 1), got {self.symbol_probability}")
        for name in ('weak_threshold', 'strong_threshold'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if len(self.alphabet) != 4 or len(set(self.alphabet)) != 4:
            raise ValueError(f"alphabet must hold 4 distinct symbols, got {self.alphabet!r}")
        if self.pvalue_floor <= 0.0:
            raise ValueError(f"pvalue_floor must be positive, got {self.pvalue_floor}")
        return self


DEFAULT_CONFIG = RepeatConfig()


@dataclass(frozen=True)
class Segment:
    """A window of the input sequence together with its consensus statistics."""
    content: str
    consensus_word: str
    position_pvalues: Tuple[float, ...]
    combined_score: float
    start: int
    length: int

    @property
    def end(self):
        """Exclusive end coordinate in the original sequence."""
        return self.start + self.length

    def is_strong(self, config=DEFAULT_CONFIG):
        return self.combined_score < config.strong_threshold

    def is_weak(self, config=DEFAULT_CONFIG):
        return self.combined_score > config.weak_threshold


def validate_sequence(sequence: str, alphabet: str = DNA_ALPHABET) -> str:
    """
    Check that a sequence only uses symbols from the alphabet.

    Args:
        sequence: Sequence to check
        alphabet: Allowed symbols

    Returns:
        The sequence, unchanged

    Raises:
        ValueError: If an unknown symbol is found
    """
    allowed = set(alphabet)
    for pos, symbol in enumerate(sequence):
        if symbol not in allowed:
            raise ValueError(
                f"Invalid symbol {symbol!r} at position {pos} (allowed: {alphabet})")
    return sequence


def log_binomial_coefficients(n: int) -> np.ndarray:
    """
    Natural log of C(n, k) for every k in 0..n.

    The multiplicative formula C(n, k) = C(n, k - 1) * (n - k + 1) / k is
    accumulated in log space up to n // 2 and mirrored with
    C(n, k) = C(n, n - k), so large n never overflows.
    """
    steps = np.arange(1, n // 2 + 1, dtype=float)
    half = np.concatenate(([0.0], np.cumsum(np.log((n - steps + 1) / steps))))
    return np.concatenate((half, half[:n + 1 - len(half)][::-1]))


def binomial_pvalue(n: int, k: int, p: float) -> float:
    """
    Right-tail binomial probability P(X >= k) for X ~ Bin(n, p).

    Terms are summed in log space (log-sum-exp), so tails far below the
    smallest float underflow to 0.0 instead of producing NaN.

    Args:
        n: Number of trials
        k: Minimum number of successes
        p: Success probability per trial, in (0, 1)

    Returns:
        float: Tail probability in [0, 1] (1.0 when k <= 0)
    """
    k = max(k, 0)
    if k > n:
        return 0.0

    successes = np.arange(k, n + 1, dtype=float)
    log_terms = (log_binomial_coefficients(n)[k:]
                 + successes * math.log(p)
                 + (n - successes) * math.log1p(-p))
    peak = log_terms.max()
    total = math.exp(peak) * float(np.sum(np.exp(log_terms - peak)))
    return min(max(total, 0.0), 1.0)


def combine_pvalues_fisher(pvalues: Sequence[float], floor: float = 1e-300) -> float:
    """
    Combine p-values with Fisher's method.

    The chi-square statistic X = -2 * sum(ln p) is mapped back to a score
    with exp(-X / 2). Values below the floor are clamped before the log,
    and the score itself never drops below the floor.
    """
    clamped = np.maximum(np.asarray(pvalues, dtype=float), floor)
    statistic = -2.0 * np.sum(np.log(clamped))
    return max(float(math.exp(-0.5 * statistic)), floor)


def count_word_positions(content: str, word_length: int, alphabet: str = DNA_ALPHABET) -> np.ndarray:
    """
    Tally symbols per position across the non-overlapping words of content.

    Returns:
        np.ndarray: Array of shape (word_length, len(alphabet)); row pos holds
        the counts of each symbol at index i * word_length + pos
    """
    index = {symbol: j for j, symbol in enumerate(alphabet)}
    counts = np.zeros((word_length, len(alphabet)), dtype=np.int64)
    num_words = len(content) // word_length

    for pos in range(word_length):
        for i in range(num_words):
            idx = i * word_length + pos
            if idx >= len(content):
                continue
            j = index.get(content[idx])
            if j is not None:
                counts[pos, j] += 1

    return counts


def score_content(content: str, config: RepeatConfig = DEFAULT_CONFIG):
    """
    Compute the consensus word and significance of a stretch of sequence.

    For every word position the most frequent symbol is taken (ties go to
    the earliest symbol in the alphabet), and its count is tested against
    a uniform background with a right-tail binomial test. Content shorter
    than one word yields the first alphabet symbol at every position with
    p-values of 1.0.

    Args:
        content: Sequence to score
        config: Pipeline parameters

    Returns:
        tuple: (consensus_word, position_pvalues, combined_score)
    """
    num_words = len(content) // config.word_length
    counts = count_word_positions(content, config.word_length, config.alphabet)

    # argmax returns the first maximum, so ties keep alphabet order
    best = np.argmax(counts, axis=1)
    word = ''.join(config.alphabet[j] for j in best)

    pvalues = tuple(
        binomial_pvalue(num_words, int(counts[pos, best[pos]]), config.symbol_probability)
        for pos in range(config.word_length)
    )
    combined = combine_pvalues_fisher(pvalues, config.pvalue_floor)

    return word, pvalues, combined


def make_segment(content: str, start: int, config: RepeatConfig = DEFAULT_CONFIG) -> Segment:
    """Build a scored Segment for content beginning at start."""
    word, pvalues, combined = score_content(content, config)
    return Segment(
        content=content,
        consensus_word=word,
        position_pvalues=pvalues,
        combined_score=combined,
        start=start,
        length=len(content),
    )


def extend_segment(segment: Segment, extra: str, config: RepeatConfig = DEFAULT_CONFIG) -> Segment:
    """Append extra content to a segment and rescore it, keeping its start."""
    word, pvalues, combined = score_content(segment.content + extra, config)
    return replace(
        segment,
        content=segment.content + extra,
        consensus_word=word,
        position_pvalues=pvalues,
        combined_score=combined,
        length=len(segment.content) + len(extra),
    )


def segment_sequence(sequence: str, config: RepeatConfig = DEFAULT_CONFIG) -> List[Segment]:
    """
    Split a sequence into consecutive windows and score each one.

    The last window holds the remainder and may be shorter than
    config.window_length. An empty sequence gives no windows.
    """
    step = config.window_length
    return [make_segment(sequence[i:i + step], i, config)
            for i in range(0, len(sequence), step)]


def merge_same_word_segments(segments: Sequence[Segment],
                             config: RepeatConfig = DEFAULT_CONFIG) -> List[Segment]:
    """
    Coalesce runs of adjacent segments that share a consensus word.

    Each merge rescores the combined content, and the next segment is
    compared against the rescored word.
    """
    merged = []
    current = None

    for seg in segments:
        if current is None:
            current = seg
        elif seg.consensus_word == current.consensus_word:
            current = extend_segment(current, seg.content, config)
        else:
            merged.append(current)
            current = seg

    if current is not None:
        merged.append(current)

    return merged


def should_bridge(left: Segment, middle: Segment, right: Segment,
                  config: RepeatConfig = DEFAULT_CONFIG) -> bool:
    """Whether a weak middle segment sits between two strong, differing flanks."""
    return (middle.consensus_word != left.consensus_word
            and middle.consensus_word != right.consensus_word
            and left.is_strong(config)
            and right.is_strong(config)
            and middle.is_weak(config))


def merge_noise_segments(segments: Sequence[Segment],
                         config: RepeatConfig = DEFAULT_CONFIG) -> List[Segment]:
    """
    Bridge weak segments that interrupt strong ones.

    Scans left to right. The left flank is always the last segment already
    in the result, so a bridged segment can take part in the next test.
    When a bridge fires, the middle and right segments are appended to the
    left one and the scan resumes after the right segment.
    """
    if not segments:
        return []

    result = [segments[0]]
    i = 1

    while i < len(segments):
        if i < len(segments) - 1:
            left = result[-1]
            middle = segments[i]
            right = segments[i + 1]

            if should_bridge(left, middle, right, config):
                result[-1] = extend_segment(left, middle.content + right.content, config)
                i += 2
                continue

        result.append(segments[i])
        i += 1

    return result


def find_hidden_repeats(sequence: str, config: RepeatConfig = DEFAULT_CONFIG) -> List[Segment]:
    """
    Run the full detection pipeline on one sequence.

    Args:
        sequence: Sequence over config.alphabet
        config: Pipeline parameters

    Returns:
        list: Final segments in sequence order

    Raises:
        ValueError: If the configuration or the sequence is invalid
    """
    config.validate()
    validate_sequence(sequence, config.alphabet)

    segments = segment_sequence(sequence, config)
    segments = merge_same_word_segments(segments, config)
    segments = merge_noise_segments(segments, config)
    return segments

"""
Weighted fuzzy matching over quote fields.

The matcher scores each candidate against a free-text query with a Bitap
approximate-string search, run separately on the quote text, its context and
the joined speaker names. Field scores are distances in ``[0, 1]`` (0 is an
exact match) and are combined into one relevance score using the field
weights and a length norm, so a hit in a short field counts for more than the
same hit buried in a long one. Lower scores rank first.

The pipeline only depends on the :class:`FuzzyMatcher` protocol, so another
algorithm can be dropped in without touching it.
"""

import math
import re
import sys
from dataclasses import dataclass
from typing import Generic, Optional, Protocol, Sequence, TypeVar

from config import HearsayConfig
from models.projections import MatchedField

# Longest pattern the bit-parallel search handles in one pass
MAX_PATTERN_BITS = 32

# Stands in for a perfect score so the weighted product stays meaningful
EPSILON = sys.float_info.epsilon

_TOKEN = re.compile(r"[^ ]+")

T = TypeVar("T")


class Searchable(Protocol):
    content: str
    context: Optional[str]

    @property
    def speaker_names(self) -> str: ...


@dataclass(frozen=True)
class FieldWeights:
    """Relative importance of each searchable field."""

    content: float = 0.7
    context: float = 0.2
    speakers: float = 0.1

    def __post_init__(self):
        if min(self.content, self.context, self.speakers) < 0:
            raise ValueError("Field weights must not be negative")
        if self.total <= 0:
            raise ValueError("At least one field weight must be positive")

    @property
    def total(self) -> float:
        return self.content + self.context + self.speakers

    def normalized(self) -> dict[str, float]:
        """Weights scaled to sum to 1, keyed by field name."""
        return {
            "content": self.content / self.total,
            "context": self.context / self.total,
            "speakers": self.speakers / self.total,
        }

    @classmethod
    def from_config(cls, config: HearsayConfig) -> "FieldWeights":
        return cls(
            content=config.search_content_weight,
            context=config.search_context_weight,
            speakers=config.search_speaker_weight,
        )


@dataclass(frozen=True)
class FuzzyOptions:
    """Tuning knobs for the Bitap search.

    Attributes:
        threshold: Worst field score still counted as a match. 0 demands an
            exact match, 1 accepts anything.
        distance: How many characters away from ``location`` a match may sit
            before the proximity penalty alone reaches 1.
        location: Where in the field a match is expected to start.
        ignore_location: Score matches by errors only, wherever they occur.
        ignore_field_norm: Skip the field length norm when combining scores.
        field_norm_weight: Strength of the field length norm.
    """

    threshold: float = 0.4
    distance: int = 100
    location: int = 0
    ignore_location: bool = False
    ignore_field_norm: bool = False
    field_norm_weight: float = 1.0

    @classmethod
    def from_config(cls, config: HearsayConfig) -> "FuzzyOptions":
        return cls(
            threshold=config.search_threshold,
            distance=config.search_distance,
            ignore_location=config.search_ignore_location,
        )


@dataclass(frozen=True)
class FieldMatch:
    is_match: bool
    score: float
    indices: tuple[tuple[int, int], ...] = ()


@dataclass(frozen=True)
class ScoredCandidate(Generic[T]):
    """A candidate that cleared the threshold, with its relevance score
    and the ranges of each field that matched."""

    item: T
    score: float
    index: int
    matches: tuple[MatchedField, ...] = ()


class FuzzyMatcher(Protocol):
    def rank(
        self, candidates: Sequence[T], query: str, weights: FieldWeights
    ) -> list[ScoredCandidate[T]]:
        """Order candidates by relevance to ``query``, dropping non-matches."""
        ...


def pattern_alphabet(pattern: str) -> dict[str, int]:
    """Bit mask per character marking where it occurs in the pattern."""
    mask: dict[str, int] = {}
    length = len(pattern)
    for i, char in enumerate(pattern):
        mask[char] = mask.get(char, 0) | (1 << (length - i - 1))
    return mask


def mask_to_ranges(mask: Sequence[int]) -> tuple[tuple[int, int], ...]:
    """Collapse runs of set positions into inclusive ``(start, end)`` ranges."""
    ranges = []
    start = -1
    for i, bit in enumerate(mask):
        if bit and start == -1:
            start = i
        elif not bit and start != -1:
            ranges.append((start, i - 1))
            start = -1
    if start != -1:
        ranges.append((start, len(mask) - 1))
    return tuple(ranges)


def compute_score(
    pattern_length: int,
    errors: int,
    current_location: int,
    expected_location: int,
    distance: int,
    ignore_location: bool,
) -> float:
    """Score a candidate match from its error count and how far it drifted."""
    accuracy = errors / pattern_length
    if ignore_location:
        return accuracy

    proximity = abs(expected_location - current_location)
    if not distance:
        return 1.0 if proximity else accuracy
    return accuracy + proximity / distance


def bitap_search(
    text: str,
    pattern: str,
    alphabet: dict[str, int],
    *,
    location: int = 0,
    distance: int = 100,
    threshold: float = 0.4,
    ignore_location: bool = False,
) -> FieldMatch:
    """Approximate search for ``pattern`` in ``text``.

    For each allowed error count the search window is narrowed with a binary
    search to the positions that could still beat the best score so far, and
    the text is scanned right to left with the bit-parallel state from the
    previous error level. The search stops as soon as one more error could no
    longer beat the threshold.

    Every scanned position holding a pattern character is marked, and the
    marked runs are returned as the match ranges. A search that marks
    nothing is not a match.

    ``pattern`` must be at most MAX_PATTERN_BITS characters long.
    """
    pattern_length = len(pattern)
    text_length = len(text)
    expected_location = max(0, min(location, text_length))

    def score_at(errors: int, current_location: int) -> float:
        return compute_score(
            pattern_length,
            errors,
            current_location,
            expected_location,
            distance,
            ignore_location,
        )

    current_threshold = threshold
    best_location = expected_location
    match_mask = [0] * (text_length + pattern_length + 2)

    # Exact occurrences tighten the threshold before the fuzzy pass
    index = text.find(pattern, best_location)
    while index > -1:
        current_threshold = min(score_at(0, index), current_threshold)
        best_location = index + pattern_length
        for position in range(index, best_location):
            match_mask[position] = 1
        index = text.find(pattern, best_location)

    best_location = -1
    final_score = 1.0
    last_bits = [0] * (text_length + pattern_length + 2)
    bin_max = pattern_length + text_length
    match_bit = 1 << (pattern_length - 1)

    for errors in range(pattern_length):
        bin_min = 0
        bin_mid = bin_max
        while bin_min < bin_mid:
            if score_at(errors, expected_location + bin_mid) <= current_threshold:
                bin_min = bin_mid
            else:
                bin_max = bin_mid
            bin_mid = (bin_max - bin_min) // 2 + bin_min
        bin_max = bin_mid

        start = max(1, expected_location - bin_mid + 1)
        finish = min(expected_location + bin_mid, text_length) + pattern_length

        bits = [0] * (text_length + pattern_length + 2)
        bits[finish + 1] = (1 << errors) - 1

        j = finish
        while j >= start:
            current_location = j - 1
            char_match = (
                alphabet.get(text[current_location], 0)
                if current_location < text_length
                else 0
            )
            if char_match:
                match_mask[current_location] = 1
            bits[j] = ((bits[j + 1] << 1) | 1) & char_match
            if errors:
                bits[j] |= (
                    ((last_bits[j + 1] | last_bits[j]) << 1) | 1 | last_bits[j + 1]
                )

            if bits[j] & match_bit:
                final_score = score_at(errors, current_location)
                if final_score <= current_threshold:
                    current_threshold = final_score
                    best_location = current_location
                    if best_location <= expected_location:
                        break
                    start = max(1, 2 * expected_location - best_location)
            j -= 1

        if score_at(errors + 1, expected_location) > current_threshold:
            break
        last_bits = bits

    indices = mask_to_ranges(match_mask)
    return FieldMatch(
        is_match=best_location >= 0 and bool(indices),
        score=max(0.001, final_score),
        indices=indices,
    )


class BitapPattern:
    """A lower-cased query prepared for repeated searches.

    Queries longer than MAX_PATTERN_BITS are split into chunks of that size,
    the last chunk taking the final MAX_PATTERN_BITS characters. A text
    matches when any chunk matches, and scores the mean of the chunk scores.
    """

    def __init__(self, pattern: str, options: FuzzyOptions):
        self.pattern = pattern.lower()
        self.options = options
        self.chunks: list[tuple[str, dict[str, int], int]] = []

        length = len(self.pattern)
        if length > MAX_PATTERN_BITS:
            remainder = length % MAX_PATTERN_BITS
            end = length - remainder
            for start in range(0, end, MAX_PATTERN_BITS):
                self._add_chunk(self.pattern[start : start + MAX_PATTERN_BITS], start)
            if remainder:
                start = length - MAX_PATTERN_BITS
                self._add_chunk(self.pattern[start:], start)
        else:
            self._add_chunk(self.pattern, 0)

    def _add_chunk(self, chunk: str, start_index: int) -> None:
        self.chunks.append((chunk, pattern_alphabet(chunk), start_index))

    def search_in(self, text: str) -> FieldMatch:
        text = text.lower()
        if text == self.pattern:
            return FieldMatch(is_match=True, score=0.0, indices=((0, len(text) - 1),))

        total_score = 0.0
        has_match = False
        indices: list[tuple[int, int]] = []
        for chunk, alphabet, start_index in self.chunks:
            result = bitap_search(
                text,
                chunk,
                alphabet,
                location=self.options.location + start_index,
                distance=self.options.distance,
                threshold=self.options.threshold,
                ignore_location=self.options.ignore_location,
            )
            total_score += result.score
            if result.is_match:
                has_match = True
                indices.extend(result.indices)

        if not has_match:
            return FieldMatch(is_match=False, score=1.0)
        return FieldMatch(
            is_match=True, score=total_score / len(self.chunks), indices=tuple(indices)
        )


def field_norm(text: str, weight: float = 1.0) -> float:
    """Length norm for a field: shorter fields pull scores down harder."""
    tokens = max(1, len(_TOKEN.findall(text)))
    return round(1 / math.pow(tokens, 0.5 * weight), 3)


class BitapMatcher:
    """Default :class:`FuzzyMatcher` built on :func:`bitap_search`."""

    def __init__(self, options: Optional[FuzzyOptions] = None):
        self.options = options or FuzzyOptions()

    @staticmethod
    def field_values(candidate: Searchable) -> dict[str, Optional[str]]:
        return {
            "content": candidate.content,
            "context": candidate.context,
            "speakers": candidate.speaker_names,
        }

    def score(
        self, pattern: BitapPattern, candidate: Searchable, weights: dict[str, float]
    ) -> Optional[tuple[float, tuple[MatchedField, ...]]]:
        """Combined score and matched fields for one candidate, or None when
        no field matches.

        Each matching field contributes ``score ** (weight * norm)``; the
        contributions multiply together.
        """
        total = 1.0
        matches = []
        for field, value in self.field_values(candidate).items():
            weight = weights[field]
            if not value or not value.strip() or weight <= 0:
                continue
            result = pattern.search_in(value)
            if not result.is_match:
                continue
            matches.append(MatchedField(key=field, value=value, indices=result.indices))
            norm = (
                1.0
                if self.options.ignore_field_norm
                else field_norm(value, self.options.field_norm_weight)
            )
            base = EPSILON if result.score == 0 else result.score
            total *= math.pow(base, weight * norm)
        return (total, tuple(matches)) if matches else None

    def rank(
        self, candidates: Sequence[T], query: str, weights: FieldWeights
    ) -> list[ScoredCandidate[T]]:
        """Score every candidate and return the matches, best first.

        Ties keep the order the candidates came in.
        """
        query = query.strip()
        if not query:
            return [
                ScoredCandidate(item=item, score=0.0, index=i)
                for i, item in enumerate(candidates)
            ]

        pattern = BitapPattern(query, self.options)
        normalized = weights.normalized()
        scored = []
        for i, candidate in enumerate(candidates):
            result = self.score(pattern, candidate, normalized)
            if result is not None:
                score, matches = result
                scored.append(
                    ScoredCandidate(item=candidate, score=score, index=i, matches=matches)
                )

        scored.sort(key=lambda match: (match.score, match.index))
        return scored

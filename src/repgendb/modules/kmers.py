"""Protein k-mer sets and the similarity measures built on them."""

import logging
from typing import FrozenSet, Iterator, Optional

from repgendb.core.exceptions import KmerSizeMismatchError


logger = logging.getLogger(__name__)

DEFAULT_KMER_SIZE = 8

# Used only when a caller does not pass an explicit k-mer size
_active_kmer_size = DEFAULT_KMER_SIZE


def get_default_kmer_size() -> int:
    """Return the k-mer size used when none is specified."""
    return _active_kmer_size


def set_default_kmer_size(k: int) -> None:
    """
    Set the k-mer size used when none is specified.

    Existing k-mer sets and indexes keep the size they were built with.

    Args:
        k: New default k-mer size

    Raises:
        ValueError: k is not a positive integer
    """
    global _active_kmer_size
    k = check_kmer_size(k)
    if k != _active_kmer_size:
        logger.debug(f"Default k-mer size changed from {_active_kmer_size} to {k}")
    _active_kmer_size = k


def check_kmer_size(k: int) -> int:
    if isinstance(k, bool) or not isinstance(k, int) or k < 1:
        raise ValueError(f"K-mer size must be a positive integer, got {k!r}")
    return k


class KmerSet:
    """
    The set of all length-K substrings of a protein sequence.

    Similarity between two sets is the number of k-mers they share. Sets are
    only comparable when they were built with the same K.
    """

    __slots__ = ("_k", "_protein", "_kmers")

    def __init__(self, sequence: str, k: Optional[int] = None) -> None:
        self._k = get_default_kmer_size() if k is None else check_kmer_size(k)
        self._protein = sequence or ""
        normalized = self._protein.upper()
        n = len(normalized) - self._k + 1
        self._kmers: FrozenSet[str] = frozenset(
            normalized[i:i + self._k] for i in range(n)
        )

    @property
    def k(self) -> int:
        """K-mer size used to build this set."""
        return self._k

    @property
    def protein(self) -> str:
        """The protein sequence this set was built from, as supplied."""
        return self._protein

    @property
    def kmers(self) -> FrozenSet[str]:
        return self._kmers

    def __len__(self) -> int:
        return len(self._kmers)

    def __iter__(self) -> Iterator[str]:
        return iter(self._kmers)

    def __contains__(self, kmer: object) -> bool:
        return kmer in self._kmers

    def _check_compatible(self, other: "KmerSet") -> None:
        if other._k != self._k:
            raise KmerSizeMismatchError(self._k, other._k)

    def similarity(self, other: "KmerSet") -> int:
        """
        Return the number of k-mers shared with another set.

        Args:
            other: K-mer set built with the same K

        Returns:
            Size of the intersection

        Raises:
            KmerSizeMismatchError: The sets use different k-mer sizes
        """
        other = _as_kmer_set(other)
        self._check_compatible(other)
        return len(self._kmers & other._kmers)

    def distance(self, other: "KmerSet") -> float:
        """
        Return the distance to another set, between 0.0 and 1.0.

        The distance is 1 - similarity / min(|a|, |b|), with the denominator
        floored at 1. Two empty sets are at distance 0.0.
        """
        other = _as_kmer_set(other)
        sim = self.similarity(other)
        return kmer_distance(sim, len(self), len(other))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KmerSet):
            return NotImplemented
        return self._k == other._k and self._kmers == other._kmers

    def __hash__(self) -> int:
        return hash((self._k, self._kmers))

    def __repr__(self) -> str:
        return f"KmerSet(k={self._k}, n={len(self._kmers)})"


def kmer_distance(similarity: int, size1: int, size2: int) -> float:
    """Compute the k-mer distance from a similarity score and the two set sizes."""
    if size1 == 0 and size2 == 0:
        return 0.0
    denominator = max(1, min(size1, size2))
    return 1.0 - similarity / denominator


def _as_kmer_set(other) -> KmerSet:
    """Accept a KmerSet or any object carrying one in a ``fingerprint`` attribute."""
    if isinstance(other, KmerSet):
        return other
    fingerprint = getattr(other, "fingerprint", None)
    if isinstance(fingerprint, KmerSet):
        return fingerprint
    raise TypeError(f"Cannot compare k-mers with {type(other).__name__}")

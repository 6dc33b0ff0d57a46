"""
Tests for protein k-mer sets.
"""

import pytest

from repgendb.core.exceptions import KmerSizeMismatchError
from repgendb.modules.kmers import (
    KmerSet,
    get_default_kmer_size,
    set_default_kmer_size,
    kmer_distance,
)
from conftest import mutate, random_protein


class TestKmerExtraction:
    """Test k-mer set construction."""

    def test_window_count(self):
        kmers = KmerSet("ABCDEFGH", k=3)
        assert len(kmers) == 6
        assert "ABC" in kmers
        assert "FGH" in kmers
        assert "HAB" not in kmers

    def test_case_is_normalized(self):
        lower = KmerSet("mshlaelvas", k=4)
        upper = KmerSet("MSHLAELVAS", k=4)
        assert lower.similarity(upper) == len(upper)
        assert "MSHL" in lower
        # the protein itself is kept as supplied
        assert lower.protein == "mshlaelvas"

    def test_short_sequence_is_empty(self):
        kmers = KmerSet("MSHL", k=10)
        assert len(kmers) == 0
        assert KmerSet("", k=10).kmers == frozenset()

    def test_repeated_kmers_are_counted_once(self):
        kmers = KmerSet("AAAAAAAA", k=3)
        assert len(kmers) == 1

    def test_default_kmer_size(self):
        assert KmerSet("MSHLAELVASAKAA").k == get_default_kmer_size()
        set_default_kmer_size(5)
        assert KmerSet("MSHLAELVASAKAA").k == 5
        # explicit sizes ignore the default
        assert KmerSet("MSHLAELVASAKAA", k=9).k == 9

    @pytest.mark.parametrize("bad_size", [0, -3, 2.5, True])
    def test_invalid_kmer_size(self, bad_size):
        with pytest.raises(ValueError):
            KmerSet("MSHLAELVAS", k=bad_size)
        with pytest.raises(ValueError):
            set_default_kmer_size(bad_size)


class TestSimilarity:
    """Test similarity and distance."""

    def test_similarity_is_shared_kmers(self, phes_protein):
        full = KmerSet(phes_protein, k=10)
        prefix = KmerSet(phes_protein[:60], k=10)
        assert full.similarity(prefix) == 51
        assert full.similarity(full) == len(full)

    def test_similarity_is_symmetric(self, rng):
        proteins = [random_protein(rng)]
        proteins += [mutate(rng, proteins[0], n) for n in (1, 5, 20)]
        proteins.append(random_protein(rng, 50))
        sets = [KmerSet(p, k=8) for p in proteins]
        for a in sets:
            for b in sets:
                assert a.similarity(b) == b.similarity(a)
                assert a.distance(b) == b.distance(a)

    def test_self_distance_is_zero(self, phes_protein):
        for protein in [phes_protein, phes_protein[:30], "MSH", ""]:
            kmers = KmerSet(protein, k=10)
            assert kmers.distance(kmers) == 0.0

    def test_unrelated_distance_is_one(self, phes_protein, unrelated_protein):
        a = KmerSet(phes_protein, k=10)
        b = KmerSet(unrelated_protein, k=10)
        assert a.similarity(b) == 0
        assert a.distance(b) == 1.0

    def test_distance_uses_smaller_set(self, phes_protein):
        full = KmerSet(phes_protein, k=10)
        prefix = KmerSet(phes_protein[:60], k=10)
        # every k-mer of the prefix is in the full protein
        assert full.distance(prefix) == 0.0

    def test_distance_formula(self):
        assert kmer_distance(5, 10, 20) == pytest.approx(0.5)
        assert kmer_distance(0, 0, 20) == 1.0
        assert kmer_distance(0, 0, 0) == 0.0

    def test_distance_range(self, rng):
        base = random_protein(rng)
        for n in (0, 3, 10, 50, 150):
            d = KmerSet(base, k=8).distance(KmerSet(mutate(rng, base, n), k=8))
            assert 0.0 <= d <= 1.0

    def test_triangle_inequality_near_violations(self, rng):
        """Distances among point-mutation variants of one protein stay close to a metric."""
        base = random_protein(rng, 300)
        variants = [base] + [mutate(rng, base, n) for n in (2, 4, 8, 12, 25)]
        sets = [KmerSet(v, k=8) for v in variants]
        n = len(sets)
        for i in range(n):
            for j in range(n):
                for k in range(n):
                    dij = sets[i].distance(sets[j])
                    djk = sets[j].distance(sets[k])
                    dik = sets[i].distance(sets[k])
                    assert dij + djk >= dik - 0.01

    def test_mismatched_kmer_sizes_are_rejected(self, phes_protein):
        a = KmerSet(phes_protein, k=8)
        b = KmerSet(phes_protein, k=10)
        with pytest.raises(KmerSizeMismatchError) as exc_info:
            a.similarity(b)
        assert exc_info.value.expected == 8
        assert exc_info.value.found == 10
        with pytest.raises(KmerSizeMismatchError):
            b.distance(a)

    def test_compare_with_unsupported_type(self):
        with pytest.raises(TypeError):
            KmerSet("MSHLAELVAS", k=3).similarity("MSHLAELVAS")


class TestValueSemantics:
    """K-mer sets are immutable values."""

    def test_equality_and_hash(self):
        a = KmerSet("MSHLAELVAS", k=4)
        b = KmerSet("mshlaelvas", k=4)
        assert a == b
        assert hash(a) == hash(b)
        assert a != KmerSet("MSHLAELVAS", k=5)

    def test_iteration(self):
        kmers = KmerSet("ABCDE", k=4)
        assert sorted(kmers) == ["ABCD", "BCDE"]

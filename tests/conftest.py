"""Shared fixtures for RepGenDB tests."""

import random

import pytest

from repgendb.modules.kmers import DEFAULT_KMER_SIZE, set_default_kmer_size


AMINO_ACIDS = "ACDEFGHIKLMNPQRSTVWY"

# Phenylalanyl-tRNA synthetase alpha chain of Escherichia coli EC4402
PHES_PROTEIN = (
    "MSHLAELVASAKAAISQASDVAALDNVRVEYLGKKGHLTLQMTTLRELPPEERPAAGAVI"
    "NEAKEQVQQALNARKAELESAALNARLAAETIDVSLPGRRIENGGLHPVTRTIDRIESFF"
    "GELGFTVATGPEIEDDYHNFDALNIPGHHPARADHDTFWFDATRLLRTQTSGVQIRTMKA"
    "QQPPIRIIAPGRVYRNDYDQTHTPMFHQMEGLIVDTNISFTNLKGTLHDFLRNFFEEDLQ"
    "IRFRPSYFPFTEPSAEVDVMGKNGKWLEVLGCGMVHPNVLRNVGIDPEVYSGFAFGMGME"
    "RLTMLRYGVTDLRSFFENDLRFLKQFK"
)


@pytest.fixture(autouse=True)
def reset_kmer_size():
    """Restore the default k-mer size after every test."""
    set_default_kmer_size(DEFAULT_KMER_SIZE)
    yield
    set_default_kmer_size(DEFAULT_KMER_SIZE)


@pytest.fixture
def phes_protein():
    return PHES_PROTEIN


@pytest.fixture
def unrelated_protein():
    """A protein sharing no 8-mers or 10-mers with the PheS protein."""
    return PHES_PROTEIN[::-1]


def random_protein(rng: random.Random, length: int = 200) -> str:
    return "".join(rng.choice(AMINO_ACIDS) for _ in range(length))


def mutate(rng: random.Random, protein: str, n_mutations: int) -> str:
    """Apply point substitutions at distinct positions, each to a different residue."""
    residues = list(protein)
    for pos in rng.sample(range(len(residues)), n_mutations):
        residues[pos] = rng.choice([aa for aa in AMINO_ACIDS if aa != residues[pos]])
    return "".join(residues)


@pytest.fixture
def rng():
    return random.Random(1005530)

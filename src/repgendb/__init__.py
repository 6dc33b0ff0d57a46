"""
Representative Genome Database

Selects a non-redundant set of representative genomes using k-mer similarity
over a single seed protein, and finds the closest representative for new
genomes or protein sequences.
"""

__version__ = "1.0.0"
__author__ = "RepGenDB Team"

from repgendb.modules.kmers import KmerSet, get_default_kmer_size, set_default_kmer_size
from repgendb.modules.representatives import (
    Representation, RepresentativeEntry, RepresentativeIndex, merge_representations
)
from repgendb.modules.seed_protein import SeedProteinLocator

__all__ = [
    "KmerSet",
    "get_default_kmer_size",
    "set_default_kmer_size",
    "Representation",
    "RepresentativeEntry",
    "RepresentativeIndex",
    "merge_representations",
    "SeedProteinLocator",
]

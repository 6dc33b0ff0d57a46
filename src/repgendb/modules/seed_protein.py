"""Seed-protein lookup in annotated genome models."""

import logging
from typing import Iterable, Optional, Tuple

from repgendb.core.types import FeatureLike, GenomeLike
from repgendb.modules.representatives import DEFAULT_PROTEIN, RepresentativeEntry


logger = logging.getLogger(__name__)


class SeedProteinLocator:
    """
    Finds the seed protein of a genome by its functional annotation.

    A feature qualifies when its function string is exactly the protein name
    or one of its aliases. When several features qualify, the one with the
    longest protein translation is used; among equally long translations the
    lowest feature ID wins.
    """

    def __init__(self, protein_name: Optional[str] = None,
                 protein_aliases: Iterable[str] = (), k: Optional[int] = None) -> None:
        self.protein_name = protein_name or DEFAULT_PROTEIN
        names = [self.protein_name]
        for alias in protein_aliases:
            if alias and alias not in names:
                names.append(alias)
        self.protein_aliases: Tuple[str, ...] = tuple(names)
        self._functions = frozenset(names)
        self.k = k

    def is_seed_function(self, function: Optional[str]) -> bool:
        """Return True if a function string names the seed protein."""
        return function is not None and function in self._functions

    def find_feature(self, genome: GenomeLike) -> Optional[FeatureLike]:
        """Return the best seed-protein feature of a genome, or None if it has none."""
        best = None
        best_key = None
        for feature in genome.features:
            if not self.is_seed_function(getattr(feature, "function", None)):
                continue
            protein = getattr(feature, "protein_translation", None)
            if not protein:
                logger.debug(f"Seed feature {feature.id} has no protein translation")
                continue
            key = (-len(protein), feature.id)
            if best_key is None or key < best_key:
                best, best_key = feature, key
        return best

    def locate(self, genome: GenomeLike) -> Optional[RepresentativeEntry]:
        """
        Build a candidate representative from a genome's seed protein.

        Args:
            genome: Genome model exposing ``name`` and ``features``

        Returns:
            RepresentativeEntry for the seed protein, or None if the genome
            has no feature annotated with the seed protein

        Raises:
            MalformedFeatureIdError: The seed feature's ID has no genome ID
        """
        feature = self.find_feature(genome)
        if feature is None:
            logger.info(f"No {self.protein_name} found in genome {getattr(genome, 'name', '')}")
            return None
        return RepresentativeEntry(feature.id, genome.name, feature.protein_translation, self.k)

"""Core data types shared with genome-model providers."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Iterable, Tuple, Union, Protocol

from Bio.SeqRecord import SeqRecord


# A sequence source yields (feature_id, genome_name, protein) triples or SeqRecords
SequenceTriple = Tuple[str, str, str]
SequenceSource = Iterable[Union[SequenceTriple, SeqRecord]]


class FeatureLike(Protocol):
    """Minimal view of an annotated feature required by the seed-protein locator."""
    id: str
    function: Optional[str]
    protein_translation: Optional[str]


class GenomeLike(Protocol):
    """Minimal view of a genome model required by the seed-protein locator."""
    name: str

    @property
    def features(self) -> Iterable[FeatureLike]:
        ...


@dataclass
class ProteinFeature:
    """An annotated protein-coding feature."""
    id: str
    function: Optional[str] = None
    protein_translation: Optional[str] = None


@dataclass
class Genome:
    """A genome with its annotated features."""
    id: str
    name: str
    features: List[ProteinFeature] = field(default_factory=list)


def sequence_triple(item: Union[SequenceTriple, SeqRecord]) -> SequenceTriple:
    """
    Normalize one item of a sequence source.

    A SeqRecord contributes its ID as the feature ID, the remainder of its
    description as the genome name, and its sequence as the protein.

    Args:
        item: (feature_id, name, protein) triple or SeqRecord

    Returns:
        (feature_id, name, protein) triple
    """
    if isinstance(item, SeqRecord):
        return item.id, record_comment(item), str(item.seq)
    fid, name, protein = item
    return fid, name, protein


def record_comment(record: SeqRecord) -> str:
    """Return the part of a FASTA description that follows the record ID."""
    description = record.description or ""
    if description.startswith(record.id):
        description = description[len(record.id):]
    return description.strip()


@dataclass
class ValidationResult:
    """Result of validation operation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

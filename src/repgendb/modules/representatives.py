"""Representative genomes and the threshold-based representative-genome index."""

import logging
import multiprocessing
import re
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from functools import reduce, total_ordering
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from repgendb.core.exceptions import IndexFileError, KmerSizeMismatchError, MalformedFeatureIdError
from repgendb.core.feature_ids import parse_genome_id
from repgendb.core.types import GenomeLike, SequenceSource, record_comment, sequence_triple
from repgendb.modules.kmers import (
    KmerSet, check_kmer_size, get_default_kmer_size, kmer_distance, set_default_kmer_size
)


logger = logging.getLogger(__name__)

# Role name of the default seed protein
DEFAULT_PROTEIN = "Phenylalanyl-tRNA synthetase alpha chain"

# Save-file header: Rep<threshold>,K=<kmer size>
HEADER_PATTERN = re.compile(r"Rep(\d+),K=(\d+)")
ALIAS_SEPARATOR = " @ "

# Indexes smaller than this are scanned without the thread pool
DEFAULT_PARALLEL_CUTOFF = 64

Query = Union[str, KmerSet, "RepresentativeEntry", SeqRecord]


@total_ordering
class RepresentativeEntry:
    """
    A representative genome: the seed protein of one genome plus its identity.

    The genome ID is parsed from the seed protein's feature ID. Equality,
    hashing and ordering use the genome ID only; genome IDs are ordered as
    plain strings. The genome name is stored with runs of whitespace collapsed
    to single spaces, which is the form a FASTA header can hold.
    """

    __slots__ = ("_genome_id", "_fid", "_name", "_fingerprint")

    def __init__(self, fid: str, name: str, protein: str, k: Optional[int] = None) -> None:
        self._genome_id = parse_genome_id(fid)
        self._fid = fid
        self._name = " ".join(name.split()) if name else ""
        self._fingerprint = KmerSet(protein, k)

    @classmethod
    def from_record(cls, record: SeqRecord, k: Optional[int] = None) -> "RepresentativeEntry":
        """Build an entry from a FASTA record (ID = feature ID, comment = genome name)."""
        fid, name, protein = sequence_triple(record)
        return cls(fid, name, protein, k)

    def to_record(self) -> SeqRecord:
        """Return a FASTA record for this entry's seed protein."""
        # Biopython writes the description alone when it starts with the ID
        description = f"{self._fid} {self._name}" if self._name else ""
        return SeqRecord(Seq(self.protein), id=self._fid, description=description)

    @property
    def genome_id(self) -> str:
        return self._genome_id

    @property
    def fid(self) -> str:
        """Feature ID of the seed protein."""
        return self._fid

    @property
    def name(self) -> str:
        """Genome name."""
        return self._name

    @property
    def fingerprint(self) -> KmerSet:
        return self._fingerprint

    @property
    def protein(self) -> str:
        return self._fingerprint.protein

    @property
    def k(self) -> int:
        return self._fingerprint.k

    def similarity(self, other: Union["RepresentativeEntry", KmerSet]) -> int:
        """Return the number of seed-protein k-mers shared with another entry or k-mer set."""
        return self._fingerprint.similarity(other)

    def distance(self, other: Union["RepresentativeEntry", KmerSet]) -> float:
        """Return the k-mer distance to another entry or k-mer set."""
        return self._fingerprint.distance(other)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RepresentativeEntry):
            return NotImplemented
        return self._genome_id == other._genome_id

    def __lt__(self, other: "RepresentativeEntry") -> bool:
        if not isinstance(other, RepresentativeEntry):
            return NotImplemented
        return self._genome_id < other._genome_id

    def __hash__(self) -> int:
        return hash(self._genome_id)

    def __str__(self) -> str:
        return f"{self._genome_id} ({self._name})"

    def __repr__(self) -> str:
        return f"RepresentativeEntry(fid={self._fid!r}, name={self._name!r}, k={self.k})"


@dataclass(frozen=True)
class Representation:
    """
    How a query is represented: its closest representative and the score.

    A representation with no genome ID is the neutral result returned for an
    empty index.
    """
    genome_id: Optional[str] = None
    name: str = ""
    similarity: int = 0
    distance: float = 1.0
    representative: Optional[RepresentativeEntry] = None
    threshold: Optional[int] = None

    @classmethod
    def of(cls, entry: RepresentativeEntry, query: KmerSet,
           threshold: Optional[int] = None) -> "Representation":
        """Score a query against one representative."""
        sim = entry.similarity(query)
        return cls(
            genome_id=entry.genome_id,
            name=entry.name,
            similarity=sim,
            distance=_distance_from_similarity(sim, entry.fingerprint, query),
            representative=entry,
            threshold=threshold
        )

    @property
    def is_represented(self) -> bool:
        """True if the similarity reaches the index threshold."""
        return self.threshold is not None and self.similarity >= self.threshold

    @property
    def is_extreme(self) -> bool:
        """True if the query has nothing in common with its closest representative."""
        return self.similarity == 0


def merge_representations(first: Representation, second: Representation) -> Representation:
    """
    Return the closer of two representations.

    Higher similarity wins; on a tie the lower genome ID wins, and any real
    representative beats the neutral result. The rule is associative and
    commutative, so partial results can be combined in any grouping or order.
    """
    if first.similarity != second.similarity:
        return first if first.similarity > second.similarity else second
    if first.genome_id is None:
        return second
    if second.genome_id is None:
        return first
    return first if first.genome_id <= second.genome_id else second


def representation_sort_key(rep: Representation) -> Tuple[int, bool, str]:
    """Sort key placing the closest representation first, consistent with the merge rule."""
    return (-rep.similarity, rep.genome_id is None, rep.genome_id or "")


def _distance_from_similarity(sim: int, first: KmerSet, second: KmerSet) -> float:
    return kmer_distance(sim, len(first), len(second))


def check_protein_names(names: Sequence[str]) -> Tuple[str, ...]:
    """
    Validate seed-protein names for storage in a save-file header.

    The header holds all names on one line joined by ``" @ "``. Names with
    line breaks or surrounding whitespace are rejected, as are names that
    would split differently once joined.

    Args:
        names: Protein name followed by its aliases

    Returns:
        The names as a tuple

    Raises:
        ValueError: A name cannot be stored
    """
    names = tuple(names)
    for name in names:
        if not isinstance(name, str) or not name:
            raise ValueError(f"Protein names must be non-empty strings, got {name!r}")
        if "\n" in name or "\r" in name:
            raise ValueError(f"Protein name contains a line break: {name!r}")
        if name != name.strip():
            raise ValueError(f"Protein name has surrounding whitespace: {name!r}")
    if tuple(ALIAS_SEPARATOR.join(names).split(ALIAS_SEPARATOR)) != names:
        raise ValueError(
            f"Protein names may not contain the alias separator {ALIAS_SEPARATOR!r}: {names!r}"
        )
    return names


class RepresentativeIndex:
    """
    A set of representative genomes keyed by genome ID.

    Each index is tied to a seed protein (a role name plus optional aliases),
    a similarity threshold and a k-mer size. Genomes admitted through
    :meth:`add_genomes` or :meth:`check_genome` have a similarity below the
    threshold with every other representative. :meth:`add_rep` inserts
    without checking.

    Similarity scans run over an immutable snapshot of the representatives and
    are spread across a thread pool for large indexes. Admission is sequential:
    the scan and the insert happen under one lock, and the insert replaces the
    genome map in a single assignment so readers never see a partial update.
    """

    def __init__(
        self,
        threshold: int,
        protein_name: Optional[str] = None,
        protein_aliases: Iterable[str] = (),
        k: Optional[int] = None,
        threads: Optional[int] = None,
        parallel_cutoff: int = DEFAULT_PARALLEL_CUTOFF
    ) -> None:
        if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
            raise ValueError(f"Threshold must be a non-negative integer, got {threshold!r}")
        self._threshold = threshold
        self._protein_name = protein_name or DEFAULT_PROTEIN
        names = [self._protein_name]
        for alias in protein_aliases:
            if alias and alias not in names:
                names.append(alias)
        self._protein_aliases = check_protein_names(names)
        self._k = get_default_kmer_size() if k is None else check_kmer_size(k)
        self.threads = max(1, threads or min(multiprocessing.cpu_count(), 8))
        self.parallel_cutoff = parallel_cutoff
        self._genomes: Dict[str, RepresentativeEntry] = {}
        self._admission_lock = threading.RLock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        self._locator = None

    # Configuration

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def k(self) -> int:
        return self._k

    @property
    def protein_name(self) -> str:
        return self._protein_name

    @property
    def protein_aliases(self) -> Tuple[str, ...]:
        """All accepted names of the seed protein, starting with the primary name."""
        return self._protein_aliases

    @property
    def list_file_name(self) -> str:
        return f"rep{self._threshold}.list.tbl"

    def __str__(self) -> str:
        return f"RepDb{self._threshold}(k={self._k})"

    def __repr__(self) -> str:
        return (
            f"RepresentativeIndex(threshold={self._threshold}, "
            f"protein_name={self._protein_name!r}, k={self._k}, size={len(self)})"
        )

    # Thread pool

    def _submit(self, fn, chunks: Sequence[Sequence[RepresentativeEntry]]) -> List[Future]:
        # close() waits on this lock, so it never shuts the pool down between submissions
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.threads, thread_name_prefix="repgen-scan"
                )
            return [self._executor.submit(fn, chunk) for chunk in chunks]

    def close(self) -> None:
        """Shut down the scan thread pool. The index remains usable."""
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

    def __enter__(self) -> "RepresentativeIndex":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _snapshot(self) -> Tuple[RepresentativeEntry, ...]:
        # The genome map is never modified in place, so this is a consistent view
        return tuple(self._genomes.values())

    def _use_parallel(self, entries: Sequence[RepresentativeEntry]) -> bool:
        return self.threads > 1 and len(entries) >= max(self.parallel_cutoff, 2)

    def _chunks(self, entries: Sequence[RepresentativeEntry]) -> List[Sequence[RepresentativeEntry]]:
        n_chunks = min(self.threads, len(entries))
        size = -(-len(entries) // n_chunks)
        return [entries[i:i + size] for i in range(0, len(entries), size)]

    def _query_kmers(self, query: Query) -> KmerSet:
        """Convert a query to a k-mer set compatible with this index."""
        if isinstance(query, RepresentativeEntry):
            kmers = query.fingerprint
        elif isinstance(query, KmerSet):
            kmers = query
        elif isinstance(query, SeqRecord):
            kmers = KmerSet(str(query.seq), self._k)
        elif isinstance(query, str):
            kmers = KmerSet(query, self._k)
        else:
            raise TypeError(f"Unsupported query type: {type(query).__name__}")
        if kmers.k != self._k:
            raise KmerSizeMismatchError(self._k, kmers.k)
        return kmers

    # Queries

    def _closest_in(self, entries: Sequence[RepresentativeEntry], query: KmerSet) -> Representation:
        best = Representation(threshold=self._threshold)
        for entry in entries:
            best = merge_representations(best, Representation.of(entry, query, self._threshold))
        return best

    def find_closest(self, query: Query) -> Representation:
        """
        Find the representative closest to a query protein.

        Args:
            query: Protein sequence, k-mer set, entry or FASTA record

        Returns:
            Representation of the representative with the highest similarity,
            ties going to the lowest genome ID; the neutral representation
            (no genome, similarity 0, distance 1.0) if the index is empty

        Raises:
            KmerSizeMismatchError: The query k-mers use a different k-mer size
        """
        kmers = self._query_kmers(query)
        entries = self._snapshot()
        if not self._use_parallel(entries):
            return self._closest_in(entries, kmers)
        futures = self._submit(lambda chunk: self._closest_in(chunk, kmers), self._chunks(entries))
        partials = (future.result() for future in futures)
        return reduce(merge_representations, partials, Representation(threshold=self._threshold))

    def _close_in(self, entries: Sequence[RepresentativeEntry], query: KmerSet) -> List[Representation]:
        found = []
        for entry in entries:
            rep = Representation.of(entry, query, self._threshold)
            if rep.similarity >= self._threshold:
                found.append(rep)
        return found

    def find_close(self, query: Query) -> List[Representation]:
        """
        Find every representative whose similarity to a query reaches the threshold.

        Args:
            query: Protein sequence, k-mer set, entry or FASTA record

        Returns:
            List of representations, closest first
        """
        kmers = self._query_kmers(query)
        entries = self._snapshot()
        if not self._use_parallel(entries):
            found = self._close_in(entries, kmers)
        else:
            found = []
            for future in self._submit(lambda chunk: self._close_in(chunk, kmers),
                                       self._chunks(entries)):
                found.extend(future.result())
        return sorted(found, key=representation_sort_key)

    def check_similarity(self, query: Query, threshold: Optional[int] = None) -> bool:
        """
        Return True if some representative has a similarity of at least ``threshold``.

        The scan stops at the first qualifying representative.

        Args:
            query: Protein sequence, k-mer set, entry or FASTA record
            threshold: Minimum similarity; defaults to the index threshold
        """
        if threshold is None:
            threshold = self._threshold
        kmers = self._query_kmers(query)
        entries = self._snapshot()
        if not self._use_parallel(entries):
            return any(entry.similarity(kmers) >= threshold for entry in entries)

        found = threading.Event()

        def scan(chunk: Sequence[RepresentativeEntry]) -> bool:
            for entry in chunk:
                if found.is_set():
                    return False
                if entry.similarity(kmers) >= threshold:
                    found.set()
                    return True
            return False

        futures = self._submit(scan, self._chunks(entries))
        for future in as_completed(futures):
            if future.result():
                return True
        return False

    # Admission

    def _commit(self, entry: RepresentativeEntry) -> None:
        genomes = dict(self._genomes)
        genomes[entry.genome_id] = entry
        self._genomes = genomes

    def check_genome(self, new_genome: RepresentativeEntry) -> bool:
        """
        Add a genome as a representative if no current representative covers it.

        A genome that already has an entry in the index is never replaced;
        use :meth:`add_rep` to overwrite a representative.

        Args:
            new_genome: Candidate representative

        Returns:
            True if the genome was admitted, False if it is already represented
        """
        self._query_kmers(new_genome)
        with self._admission_lock:
            if new_genome.genome_id in self._genomes:
                logger.debug(f"Genome {new_genome.genome_id} is already a representative of {self}")
                return False
            if self.check_similarity(new_genome, self._threshold):
                return False
            self._commit(new_genome)
        logger.debug(f"Admitted {new_genome} as a representative of {self}")
        return True

    def add_genomes(self, sequences: SequenceSource) -> int:
        """
        Offer a stream of seed proteins to the index, in order.

        Each item is a (feature ID, genome name, protein) triple or a FASTA
        record. A genome is admitted when no representative, including the
        ones admitted earlier in the same stream, reaches the threshold.

        Args:
            sequences: Sequence source

        Returns:
            Number of new representatives

        Raises:
            MalformedFeatureIdError: A feature ID has no parseable genome ID
        """
        processed = 0
        added = 0
        for item in sequences:
            fid, name, protein = sequence_triple(item)
            candidate = RepresentativeEntry(fid, name, protein, self._k)
            processed += 1
            if self.check_genome(candidate):
                added += 1
            if processed % 1000 == 0:
                logger.info(f"{processed} genomes processed, {added} new representatives")
        logger.info(
            f"Processed {processed} genomes: {added} new representatives, {len(self)} total in {self}"
        )
        return added

    def add_rep(self, new_genome: RepresentativeEntry) -> None:
        """
        Store a representative without checking the threshold.

        An existing representative with the same genome ID is replaced.
        """
        self._query_kmers(new_genome)
        with self._admission_lock:
            self._commit(new_genome)

    def _put_genomes(self, entries: Iterable[RepresentativeEntry]) -> None:
        with self._admission_lock:
            genomes = dict(self._genomes)
            for entry in entries:
                self._query_kmers(entry)
                genomes[entry.genome_id] = entry
            self._genomes = genomes

    def remove(self, genome_id: str) -> Optional[RepresentativeEntry]:
        """Remove a representative. Returns the removed entry, or None if it was not present."""
        with self._admission_lock:
            if genome_id not in self._genomes:
                return None
            genomes = dict(self._genomes)
            removed = genomes.pop(genome_id)
            self._genomes = genomes
        return removed

    # Access

    def get(self, genome_id: str) -> Optional[RepresentativeEntry]:
        """Return the representative with the specified genome ID, or None."""
        return self._genomes.get(genome_id)

    def all(self) -> List[RepresentativeEntry]:
        """Return all representatives sorted by genome ID."""
        return sorted(self._snapshot())

    def genome_ids(self) -> List[str]:
        return sorted(self._genomes)

    def size(self) -> int:
        return len(self._genomes)

    def __len__(self) -> int:
        return len(self._genomes)

    def __iter__(self) -> Iterator[RepresentativeEntry]:
        return iter(self.all())

    def __contains__(self, item: object) -> bool:
        if isinstance(item, RepresentativeEntry):
            item = item.genome_id
        return item in self._genomes

    # Seed proteins

    def seed_locator(self):
        """Return the seed-protein locator for this index's protein names."""
        if self._locator is None:
            from repgendb.modules.seed_protein import SeedProteinLocator
            self._locator = SeedProteinLocator(
                self._protein_name, self._protein_aliases, k=self._k
            )
        return self._locator

    def get_seed_protein(self, genome: GenomeLike) -> Optional[RepresentativeEntry]:
        """Return a candidate representative built from a genome's seed protein, or None."""
        return self.seed_locator().locate(genome)

    def find_closest_genome(self, genome: GenomeLike) -> Representation:
        """Find the closest representative of a genome via its seed protein."""
        candidate = self.get_seed_protein(genome)
        if candidate is None:
            return Representation(threshold=self._threshold)
        return self.find_closest(candidate)

    def find_close_genome(self, genome: GenomeLike) -> List[Representation]:
        """Find all acceptable representatives of a genome via its seed protein."""
        candidate = self.get_seed_protein(genome)
        if candidate is None:
            return []
        return self.find_close(candidate)

    # Persistence

    def save(self, save_file: Union[str, Path]) -> None:
        """
        Save this index to a FASTA file.

        The first record is a header with the threshold and k-mer size in its
        ID and the protein aliases in its comment; each following record is a
        representative's seed protein.

        Raises:
            IndexFileError: The file could not be written
        """
        save_file = Path(save_file)
        header_id = f"Rep{self._threshold},K={self._k}"
        header = SeqRecord(
            Seq(""),
            id=header_id,
            description=f"{header_id} {ALIAS_SEPARATOR.join(self._protein_aliases)}"
        )
        records = [header] + [entry.to_record() for entry in self.all()]
        try:
            with open(save_file, "w") as handle:
                SeqIO.write(records, handle, "fasta")
        except OSError as e:
            raise IndexFileError(f"Error writing representative-genome file {save_file}: {e}",
                                 save_file) from e
        logger.info(f"Saved {len(records) - 1} representatives of {self} to {save_file}")

    @classmethod
    def load(cls, load_file: Union[str, Path], **kwargs) -> "RepresentativeIndex":
        """
        Load an index saved by :meth:`save`.

        The loaded k-mer size becomes the default k-mer size, so k-mer sets
        created later without an explicit size remain comparable.

        Args:
            load_file: Save file
            **kwargs: Extra constructor options (``threads``, ``parallel_cutoff``)

        Returns:
            The loaded index

        Raises:
            IndexFileError: The file is missing, unreadable or not a valid save file
        """
        load_file = Path(load_file)
        if not load_file.is_file():
            raise IndexFileError(f"Representative-genome file not found: {load_file}", load_file)
        try:
            with open(load_file, "r") as handle:
                records = SeqIO.parse(handle, "fasta")
                header = next(records, None)
                if header is None:
                    raise IndexFileError(f"Empty representative-genome file: {load_file}", load_file)
                match = HEADER_PATTERN.fullmatch(header.id)
                if not match:
                    raise IndexFileError(
                        f"Invalid header in representative-genome file {load_file}: {header.id!r}",
                        load_file
                    )
                threshold = int(match.group(1))
                k = int(match.group(2))
                names = [name.strip() for name in record_comment(header).split(ALIAS_SEPARATOR)]
                names = [name for name in names if name]
                index = cls(threshold, names[0] if names else None, names[1:], k=k, **kwargs)
                index._put_genomes(RepresentativeEntry.from_record(record, k) for record in records)
        except MalformedFeatureIdError as e:
            raise IndexFileError(
                f"Invalid representative in {load_file}: {e}", load_file
            ) from e
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise IndexFileError(
                f"Error reading representative-genome file {load_file}: {e}", load_file
            ) from e
        set_default_kmer_size(index.k)
        logger.info(f"Loaded {len(index)} representatives of {index} from {load_file}")
        return index

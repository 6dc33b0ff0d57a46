"""Pipeline orchestration: building and querying representative-genome indexes."""

import logging
from pathlib import Path
from typing import Dict, Any, Union, Optional, Literal, Iterator
import psutil
import time

from Bio import SeqIO

from repgendb.core.types import ValidationResult, SequenceTriple, record_comment
from repgendb.core.exceptions import ValidationError
from repgendb.utils.config import validate_configuration_schema
from repgendb.modules.kmers import set_default_kmer_size
from repgendb.modules.representatives import RepresentativeIndex
from repgendb.modules.output import generate_index_outputs, generate_representation_table


FASTA_EXTENSIONS = [".fasta", ".fa", ".faa", ".fas"]


def read_sequence_source(fasta_file: Union[str, Path]) -> Iterator[SequenceTriple]:
    """
    Stream (feature ID, genome name, protein) triples from a seed-protein FASTA file.

    The record ID is the seed protein's feature ID and the rest of the header
    is the genome name.

    Args:
        fasta_file: FASTA file of seed proteins

    Yields:
        Sequence triples in file order
    """
    with open(fasta_file, 'r') as handle:
        for record in SeqIO.parse(handle, "fasta"):
            yield record.id, record_comment(record), str(record.seq)


def create_index_from_config(config: Dict[str, Any]) -> RepresentativeIndex:
    """
    Create an empty index from a configuration.

    The configured k-mer size also becomes the default k-mer size.
    """
    index_config = config.get("index", {})
    resources = config.get("resources", {})
    k = config.get("kmers", {}).get("size")
    if k is not None:
        set_default_kmer_size(k)
    return RepresentativeIndex(
        threshold=index_config.get("threshold", 100),
        protein_name=index_config.get("protein_name"),
        protein_aliases=index_config.get("protein_aliases") or [],
        k=k,
        threads=resources.get("threads"),
        parallel_cutoff=resources.get("parallel_cutoff", 64)
    )


def build_representative_index(
    fasta_file: Union[str, Path],
    output_dir: Union[str, Path],
    config: Dict[str, Any],
    validate_inputs: bool = True,
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
) -> Dict[str, Any]:
    """
    Build a representative-genome index from a seed-protein FASTA file.

    Args:
        fasta_file: Seed proteins, one per genome, in priority order
        output_dir: Directory for the saved index and outputs
        config: Complete configuration dictionary
        validate_inputs: Whether to validate inputs before processing
        log_level: Logging verbosity level

    Returns:
        Dictionary containing results and metadata
    """
    fasta_file = Path(fasta_file)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    log_file = config.get("logging", {}).get("file") or output_dir / "repgen.log"
    setup_logging(log_level, Path(log_file))
    logger = logging.getLogger(__name__)

    logger.info("Starting representative-genome selection")
    logger.info(f"Input seed proteins: {fasta_file}")
    logger.info(f"Output directory: {output_dir}")

    start_time = time.time()
    results = {
        "start_time": start_time,
        "pipeline_version": "1.0.0",
        "config": config
    }

    if validate_inputs:
        logger.info("Validating inputs...")
        validation_result = validate_pipeline_inputs(fasta_file, config)
        if not validation_result.is_valid:
            raise ValidationError(f"Input validation failed: {validation_result.errors}",
                                  validation_result.errors, stage="validation")
        for warning in validation_result.warnings:
            logger.warning(warning)
        logger.info("Input validation passed")

    try:
        with create_index_from_config(config) as index:
            logger.info(f"Created {index} for {index.protein_name}")
            added = index.add_genomes(read_sequence_source(fasta_file))

            index_file = output_dir / f"rep{index.threshold}.ser"
            index.save(index_file)

            output_files = generate_index_outputs(index, output_dir, config)

        results["n_representatives"] = len(index)
        results["n_added"] = added
        results["index_file"] = str(index_file)
        results["output_files"] = {k: str(v) for k, v in output_files.items()}

        end_time = time.time()
        results["end_time"] = end_time
        results["runtime_seconds"] = end_time - start_time
        logger.info(f"Selected {len(index)} representatives in {end_time - start_time:.1f} seconds")
        return results

    except Exception as e:
        end_time = time.time()
        results["end_time"] = end_time
        results["runtime_seconds"] = end_time - start_time
        results["error"] = str(e)
        logger.error(f"Representative selection failed after {end_time - start_time:.1f} seconds: {e}")
        raise


def find_representatives(
    index_file: Union[str, Path],
    fasta_file: Union[str, Path],
    output_file: Union[str, Path],
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Find the closest representative for every protein in a FASTA file.

    Args:
        index_file: Saved representative-genome index
        fasta_file: Query seed proteins
        output_file: Output table
        config: Configuration dictionary

    Returns:
        Dictionary with query counts and the output path
    """
    logger = logging.getLogger(__name__)
    resources = config.get("resources", {})
    represented_only = config.get("output", {}).get("represented_only", False)

    results = []
    with RepresentativeIndex.load(
        index_file,
        threads=resources.get("threads"),
        parallel_cutoff=resources.get("parallel_cutoff", 64)
    ) as index:
        logger.info(f"Querying {index} with {fasta_file}")
        for query_id, query_name, protein in read_sequence_source(fasta_file):
            rep = index.find_closest(protein)
            if represented_only and not rep.is_represented:
                continue
            results.append((query_id, query_name, rep))

    n_represented = sum(1 for _, _, rep in results if rep.is_represented)
    generate_representation_table(results, Path(output_file))
    logger.info(f"{n_represented} of {len(results)} queries are represented")

    return {
        "n_queries": len(results),
        "n_represented": n_represented,
        "output_file": str(output_file)
    }


def validate_pipeline_inputs(
    fasta_file: Union[str, Path],
    config: Dict[str, Any]
) -> ValidationResult:
    """
    Validate the inputs of an index build.

    Args:
        fasta_file: Seed-protein FASTA file
        config: Configuration

    Returns:
        ValidationResult with validation status and details
    """
    errors = []
    warnings = []
    details = {}

    fasta_file = Path(fasta_file)
    if not fasta_file.exists():
        errors.append(f"Seed-protein file does not exist: {fasta_file}")
    elif not fasta_file.is_file():
        errors.append(f"Seed-protein path is not a file: {fasta_file}")
    else:
        if fasta_file.suffix.lower() not in FASTA_EXTENSIONS:
            warnings.append(f"Unexpected extension for a FASTA file: {fasta_file.suffix}")
        details["file_size"] = fasta_file.stat().st_size

    config_validation = validate_configuration_schema(config)
    if not config_validation.is_valid:
        errors.extend(config_validation.errors)

    memory_gb = psutil.virtual_memory().total // (1024**3)
    if memory_gb < 2:
        warnings.append(f"Low system memory: {memory_gb}GB")
    details["system_memory_gb"] = memory_gb

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        details=details
    )


def setup_logging(level: str, log_file: Optional[Path] = None) -> None:
    """
    Setup logging configuration.

    Args:
        level: Logging level
        log_file: Optional log file path
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_file) if log_file else logging.NullHandler()
        ]
    )

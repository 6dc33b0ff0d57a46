"""Output generation for representative-genome indexes and query results."""

import logging
from pathlib import Path
from typing import Dict, List, Literal, Tuple

import numpy as np
import pandas as pd
from Bio import SeqIO

from repgendb.modules.representatives import Representation, RepresentativeIndex


logger = logging.getLogger(__name__)

LIST_FILE_COLUMNS = ["genome_id", "genome_name", "seed_fid", "seed_length"]
REPRESENTATION_COLUMNS = [
    "query_id", "query_name", "rep_id", "rep_name", "similarity", "distance", "represented"
]


def generate_list_file(index: RepresentativeIndex, output_file: Path) -> Path:
    """
    Write the representative list table.

    Args:
        index: Representative-genome index
        output_file: Output file path (normally ``index.list_file_name``)

    Returns:
        Path to generated file
    """
    rows = [
        {
            "genome_id": entry.genome_id,
            "genome_name": entry.name,
            "seed_fid": entry.fid,
            "seed_length": len(entry.protein)
        }
        for entry in index.all()
    ]
    table = pd.DataFrame(rows, columns=LIST_FILE_COLUMNS)
    table.to_csv(output_file, sep='\t', index=False)

    logger.info(f"Generated representative list with {len(table)} genomes: {output_file}")
    return output_file


def representations_to_frame(
    results: List[Tuple[str, str, Representation]]
) -> pd.DataFrame:
    """
    Tabulate query results.

    Args:
        results: (query ID, query name, representation) triples

    Returns:
        DataFrame with one row per query
    """
    rows = []
    for query_id, query_name, rep in results:
        rows.append({
            "query_id": query_id,
            "query_name": query_name,
            "rep_id": rep.genome_id or "",
            "rep_name": rep.name,
            "similarity": rep.similarity,
            "distance": round(rep.distance, 6),
            "represented": rep.is_represented
        })
    return pd.DataFrame(rows, columns=REPRESENTATION_COLUMNS)


def generate_representation_table(
    results: List[Tuple[str, str, Representation]],
    output_file: Path,
    format_type: Literal["csv", "tsv"] = "tsv"
) -> Path:
    """
    Write query results as a table.

    Args:
        results: (query ID, query name, representation) triples
        output_file: Output file path
        format_type: Output format

    Returns:
        Path to generated file
    """
    table = representations_to_frame(results)
    sep = ',' if format_type == "csv" else '\t'
    table.to_csv(output_file, sep=sep, index=False)

    logger.info(f"Generated representation table for {len(table)} queries: {output_file}")
    return output_file


def calculate_similarity_matrix(index: RepresentativeIndex) -> pd.DataFrame:
    """
    Compute pairwise seed-protein similarities between all representatives.

    Args:
        index: Representative-genome index

    Returns:
        Square DataFrame indexed by genome ID in both dimensions
    """
    entries = index.all()
    n = len(entries)
    matrix = np.zeros((n, n), dtype=np.int64)
    for i in range(n):
        matrix[i, i] = len(entries[i].fingerprint)
        for j in range(i + 1, n):
            sim = entries[i].similarity(entries[j])
            matrix[i, j] = sim
            matrix[j, i] = sim
    ids = [entry.genome_id for entry in entries]
    return pd.DataFrame(matrix, index=ids, columns=ids)


def generate_similarity_matrix(index: RepresentativeIndex, output_file: Path) -> Path:
    """Write the pairwise similarity matrix of the representatives."""
    matrix = calculate_similarity_matrix(index)
    matrix.to_csv(output_file, sep='\t')

    logger.info(f"Generated {len(matrix)}x{len(matrix)} similarity matrix: {output_file}")
    return output_file


def generate_fasta_output(index: RepresentativeIndex, output_file: Path) -> Path:
    """Write the seed proteins of all representatives in FASTA format."""
    with open(output_file, 'w') as f:
        count = SeqIO.write((entry.to_record() for entry in index.all()), f, "fasta")

    logger.info(f"Wrote {count} representative seed proteins to {output_file}")
    return output_file


def generate_index_outputs(
    index: RepresentativeIndex,
    output_dir: Path,
    config: Dict
) -> Dict[str, Path]:
    """
    Generate the configured outputs for an index.

    Args:
        index: Representative-genome index
        output_dir: Output directory
        config: Configuration containing an ``output`` section

    Returns:
        Dictionary of generated files
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    output_config = config.get("output", {})
    files = {}

    if output_config.get("list_file", True):
        files["list_file"] = generate_list_file(index, output_dir / index.list_file_name)
    if output_config.get("fasta", False):
        files["fasta"] = generate_fasta_output(
            index, output_dir / f"rep{index.threshold}.faa"
        )
    if output_config.get("similarity_matrix", False):
        files["similarity_matrix"] = generate_similarity_matrix(
            index, output_dir / f"rep{index.threshold}.similarity.tsv"
        )

    logger.info(f"Generated {len(files)} output files")
    return files

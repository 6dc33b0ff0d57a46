"""Functions for parsing SEED-style feature IDs."""

import re
from typing import Optional

from repgendb.core.exceptions import MalformedFeatureIdError


# fig|<genome_id>.<feature_type>.<ordinal>, where the genome ID is <taxon>.<suffix>
FEATURE_ID_PATTERN = re.compile(r'fig\|(\d+\.\d+)\.(\w+)\.(\d+)')


def genome_of(feature_id: str) -> Optional[str]:
    """
    Extract the genome ID from a feature ID.

    Args:
        feature_id: Feature identifier, e.g. ``fig|1005530.3.peg.2208``

    Returns:
        Genome ID (``1005530.3``), or None if the feature ID is malformed

    Example:
        >>> genome_of("fig|1005530.3.peg.2208")
        '1005530.3'
        >>> genome_of("fig|12345.peg.4") is None
        True
    """
    if feature_id is None:
        return None
    match = FEATURE_ID_PATTERN.fullmatch(feature_id)
    return match.group(1) if match else None


def parse_genome_id(feature_id: str) -> str:
    """
    Extract the genome ID from a feature ID, failing on malformed input.

    Args:
        feature_id: Feature identifier

    Returns:
        Genome ID

    Raises:
        MalformedFeatureIdError: The feature ID does not match
            ``fig|<genome_id>.<type>.<ordinal>``
    """
    genome_id = genome_of(feature_id)
    if genome_id is None:
        raise MalformedFeatureIdError(feature_id)
    return genome_id

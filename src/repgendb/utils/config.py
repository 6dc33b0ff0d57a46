"""Configuration management and validation."""

import yaml
import json
from pathlib import Path
from typing import Dict, Any, Union

from repgendb.core.types import ValidationResult
from repgendb.core.exceptions import ConfigurationError
from repgendb.modules.kmers import DEFAULT_KMER_SIZE
from repgendb.modules.representatives import (
    DEFAULT_PARALLEL_CUTOFF, DEFAULT_PROTEIN, check_protein_names
)


LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def create_default_configuration() -> Dict[str, Any]:
    """
    Create the default configuration.

    Returns:
        Default configuration dictionary
    """
    return {
        "pipeline": {
            "name": "representative_genomes",
            "version": "1.0.0",
            "description": "Seed-protein representative genome selection"
        },
        "kmers": {
            "size": DEFAULT_KMER_SIZE
        },
        "index": {
            "threshold": 100,
            "protein_name": DEFAULT_PROTEIN,
            "protein_aliases": []
        },
        "resources": {
            "threads": 4,
            "parallel_cutoff": DEFAULT_PARALLEL_CUTOFF
        },
        "output": {
            "list_file": True,
            "fasta": False,
            "similarity_matrix": False,
            "represented_only": False
        },
        "logging": {
            "level": "INFO",
            "file": None
        }
    }


def load_configuration(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load and validate configuration from file.

    Values missing from the file are filled in from the defaults.

    Args:
        config_path: Path to configuration file (YAML or JSON)

    Returns:
        Validated configuration dictionary

    Raises:
        ConfigurationError: Invalid configuration
        FileNotFoundError: Configuration file not found
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            if config_path.suffix.lower() in ['.yaml', '.yml']:
                config = yaml.safe_load(f)
            elif config_path.suffix.lower() == '.json':
                config = json.load(f)
            else:
                raise ConfigurationError(f"Unsupported config file format: {config_path.suffix}",
                                         config_path)

    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Error parsing configuration file: {e}", config_path)

    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ConfigurationError("Configuration file must contain a mapping", config_path)

    return merge_configurations(create_default_configuration(), config)


def validate_configuration_schema(config: Dict[str, Any]) -> ValidationResult:
    """
    Check the structure and value ranges of a configuration.

    Args:
        config: Configuration dictionary

    Returns:
        ValidationResult with validation status
    """
    errors = []
    warnings = []

    for section in ["kmers", "index", "resources", "output", "logging"]:
        if section not in config:
            warnings.append(f"Missing '{section}' configuration - using defaults")
        elif not isinstance(config[section], dict):
            errors.append(f"'{section}' must be a dictionary")

    kmers = config.get("kmers")
    if isinstance(kmers, dict) and "size" in kmers:
        size = kmers["size"]
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            errors.append(f"kmers.size must be a positive integer, got {size!r}")

    index = config.get("index")
    if isinstance(index, dict):
        threshold = index.get("threshold", 0)
        if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
            errors.append(f"index.threshold must be a non-negative integer, got {threshold!r}")
        name = index.get("protein_name")
        if name is not None and not isinstance(name, str):
            errors.append("index.protein_name must be a string")
        aliases = index.get("protein_aliases", [])
        if not isinstance(aliases, list) or not all(isinstance(a, str) for a in aliases):
            errors.append("index.protein_aliases must be a list of strings")
        elif name is None or isinstance(name, str):
            names = [name or DEFAULT_PROTEIN]
            for alias in aliases:
                if alias and alias not in names:
                    names.append(alias)
            try:
                check_protein_names(names)
            except ValueError as e:
                errors.append(f"index.protein_aliases: {e}")

    resources = config.get("resources")
    if isinstance(resources, dict):
        for key in ["threads", "parallel_cutoff"]:
            value = resources.get(key, 1)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                errors.append(f"resources.{key} must be a positive integer, got {value!r}")

    logging_config = config.get("logging")
    if isinstance(logging_config, dict):
        level = logging_config.get("level", "INFO")
        if str(level).upper() not in LOG_LEVELS:
            errors.append(f"logging.level must be one of {LOG_LEVELS}, got {level!r}")
        log_file = logging_config.get("file")
        if log_file is not None and not isinstance(log_file, str):
            errors.append(f"logging.file must be a path string, got {log_file!r}")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        details={"validation": "basic_checks_completed"}
    )


def merge_configurations(
    base_config: Dict[str, Any],
    override_config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Merge configuration dictionaries with validation.

    Args:
        base_config: Base configuration
        override_config: Override parameters

    Returns:
        Merged configuration

    Raises:
        ConfigurationError: The merged configuration is invalid
    """
    def merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    merged = merge_dicts(base_config, override_config)

    validation_result = validate_configuration_schema(merged)
    if not validation_result.is_valid:
        raise ConfigurationError(
            f"Configuration validation failed: {validation_result.errors}"
        )

    return merged


def save_configuration(config: Dict[str, Any], output_path: Union[str, Path]) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration dictionary
        output_path: Output file path (.yaml, .yml or .json)

    Raises:
        ConfigurationError: Error saving configuration
    """
    output_path = Path(output_path)

    if output_path.suffix.lower() not in ['.yaml', '.yml', '.json']:
        raise ConfigurationError(f"Unsupported output format: {output_path.suffix}", output_path)

    try:
        with open(output_path, 'w') as f:
            if output_path.suffix.lower() in ['.yaml', '.yml']:
                yaml.dump(config, f, default_flow_style=False, indent=2, sort_keys=False)
            else:
                json.dump(config, f, indent=2)

    except (yaml.YAMLError, TypeError, OSError) as e:
        raise ConfigurationError(f"Error saving configuration: {e}", output_path)

"""Core types, identifiers and exceptions."""

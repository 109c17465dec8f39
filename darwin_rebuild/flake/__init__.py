"""Flake references: parsing and metadata resolution."""

from darwin_rebuild.flake.metadata import (
    CONFIGURATION_NAMESPACE,
    FLAKE_FLAGS,
    MetadataResolver,
    ResolvedReference,
)
from darwin_rebuild.flake.reference import FlakeReference, parse_flake_reference

__all__ = [
    "CONFIGURATION_NAMESPACE",
    "FLAKE_FLAGS",
    "FlakeReference",
    "MetadataResolver",
    "ResolvedReference",
    "parse_flake_reference",
]

"""Data models for nixgen.

This module exports the core data structures used throughout the application.
"""

from nixgen.models.activation import (
    ActivationAction,
    ActivationOutcome,
    ApplyRequest,
    BuildType,
    NixOptions,
)
from nixgen.models.deletion import DeletionSpec, Resolution, ResolutionStatus
from nixgen.models.generation import Generation, GenerationManifest

__all__ = [
    "ActivationAction",
    "ActivationOutcome",
    "ApplyRequest",
    "BuildType",
    "DeletionSpec",
    "Generation",
    "GenerationManifest",
    "NixOptions",
    "Resolution",
    "ResolutionStatus",
]

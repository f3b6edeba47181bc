"""Artifact download and inline-size spooling."""

from .materializer import MaterializedArtifacts, materialize_artifacts
from .spooler import ArtifactSpooler, SpooledArtifact, spool_result

__all__ = [
    "ArtifactSpooler",
    "MaterializedArtifacts",
    "SpooledArtifact",
    "materialize_artifacts",
    "spool_result",
]

"""Input/output components for Storymaker.

This package contains the artifact store used for story records, audio
files, and cache entries.
"""

from .storage import ArtifactStore

__all__ = ["ArtifactStore"]

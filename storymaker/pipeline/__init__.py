"""Storymaker pipeline package.

This package contains the provider fallback chain and the story, narration,
and storybook stages built on it, plus management of persisted stories.
"""

from .catalog import StoryCatalog
from .fallback import FallbackChain
from .narration import NarrationPipeline
from .story import StoryGenerator
from .storybook import StorybookBuilder

__all__ = [
    "FallbackChain",
    "NarrationPipeline",
    "StoryCatalog",
    "StoryGenerator",
    "StorybookBuilder",
]

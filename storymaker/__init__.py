"""Top-level package for Storymaker.

This package generates short stories from a prompt through prioritized AI
text providers and narrates them through prioritized speech providers. The
main orchestration entry points are `StoryGenerator` and `NarrationPipeline`;
`PlaybackStateMachine` drives playback of the narrated audio in a client.
"""

from .pipeline import NarrationPipeline, StorybookBuilder, StoryGenerator
from .playback import PlaybackEvent, PlaybackState, PlaybackStateMachine

__all__ = [
    "NarrationPipeline",
    "PlaybackEvent",
    "PlaybackState",
    "PlaybackStateMachine",
    "StoryGenerator",
    "StorybookBuilder",
    "__version__",
]

__version__ = "0.1.0"

"""Module entrypoint for running Storymaker as ``python -m storymaker``."""

from __future__ import annotations

from storymaker.cli import main


if __name__ == "__main__":
    main()

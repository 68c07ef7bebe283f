"""Telemetry and observability helpers.

This package emits deterministic run events for generation auditing.
"""

from .logger import RunLogger

__all__ = ["RunLogger"]

"""Orchestration of the resumable extraction loop.

This package provides:
- PipelineDriver: fetch → extract → commit state machine with retry/backoff
- Helpers for backoff delays, hex conversion and stride planning
"""

from fuelind.orchestration.driver import PipelineDriver, PipelineState, RunStats
from fuelind.orchestration.utils import backoff_delay, bytes_to_hex, hex_to_bytes, iter_strides

__all__ = [
    "PipelineDriver",
    "PipelineState",
    "RunStats",
    "backoff_delay",
    "bytes_to_hex",
    "hex_to_bytes",
    "iter_strides",
]

"""Streaming and synchronous fan-out components.

Only the dependency-free pieces are re-exported here; import the
orchestrator and aggregator from their modules
(``src.pipeline.fan_out``, ``src.pipeline.aggregator``).
"""

from src.pipeline.cancellation import CancellationToken
from src.pipeline.stream_registry import StreamRegistry

__all__ = [
    "CancellationToken",
    "StreamRegistry",
]

"""Parallel streaming chat engine.

Public API:
    - ParallelChatEngine: Runs one user turn against several models at once
    - RenderAdapter: Callback contract for front ends
    - StreamAccumulator, ModelOutcome, OutcomeStatus, TurnResult: Turn state
"""

from .events import ModelOutcome, OutcomeStatus, RenderAdapter, StreamAccumulator, TurnResult
from .parallel import ParallelChatEngine

__all__ = [
    "ModelOutcome",
    "OutcomeStatus",
    "ParallelChatEngine",
    "RenderAdapter",
    "StreamAccumulator",
    "TurnResult",
]

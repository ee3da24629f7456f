"""Conversation memory: history assembly for the agent loop."""

from chainagent.memory.base import Memory
from chainagent.memory.buffer import BufferMemory
from chainagent.memory.summarised import SummarisedMemory

__all__ = [
    "Memory",
    "BufferMemory",
    "SummarisedMemory",
]

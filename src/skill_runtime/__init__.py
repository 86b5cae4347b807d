"""Skill Task Runtime.

Drives an LLM agent through a declared multi-step workflow ("skill"):
- operating modes gate which tools are visible
- an ordered task queue with one active task at a time
- a register store that carries tool outputs between steps
- completion is only accepted once a task's tools have actually run
"""

__version__ = "0.1.0"

from skill_runtime.orchestrator.config import RuntimeSettings

__all__ = ["__version__", "RuntimeSettings"]

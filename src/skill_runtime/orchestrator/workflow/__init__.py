"""Static workflow concepts.

- Workflow definitions ("skills"): required tools plus an ordered task script
- The tool catalog: dispatchable tools and per-mode allow-lists

Both are read-only configuration shared across sessions.
"""

__all__: list[str] = []

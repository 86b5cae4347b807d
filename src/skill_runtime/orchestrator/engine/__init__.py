"""The orchestration engine.

This package holds the runtime pieces a session is built from:
- Register store (intermediate values, written only by tool outputs)
- Mode gate (capability-set gating)
- Task queue (ordered steps, single active cursor)
- Tool dispatcher (validated, sequential tool calls)
- Completion controller (progress vs. completion signals)
- Pending operations (submitted -> terminal outcome)

Import from the submodules directly.
"""

__all__: list[str] = []

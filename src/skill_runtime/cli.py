"""Console entrypoint shim.

The CLI is implemented in `skill_runtime.orchestrator.main`.
"""

from __future__ import annotations

from skill_runtime.orchestrator.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())

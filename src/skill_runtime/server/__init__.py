"""REST API server package.

This package is optional: the runtime core does not depend on it.
"""

from skill_runtime.server.app import create_app

__all__ = ["create_app"]

"""Boundary to the external tools the runtime dispatches to."""

__all__: list[str] = []

"""Runtime core: engine, workflow definitions, tool boundary and persistence."""

"""File-backed session snapshots.

One JSON file per session under `<state_path>/sessions/`. A save replaces the
file atomically, so a reader only ever sees the last committed step.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from pydantic import ValidationError

from skill_runtime.orchestrator.engine.session import SessionSnapshot

logger = logging.getLogger(__name__)

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class SessionNotFound(LookupError):
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Unknown session: {self.session_id}"


def validate_session_id(session_id: str) -> str:
    if not _SESSION_ID_RE.fullmatch(session_id):
        raise ValueError(f"Invalid session id: {session_id!r}")
    return session_id


class SessionStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def _file(self, session_id: str) -> Path:
        return self.path / f"{validate_session_id(session_id)}.json"

    def _existing(self, session_id: str) -> Path:
        try:
            file = self._file(session_id)
        except ValueError as e:
            # Malformed ids never name a stored session.
            raise SessionNotFound(session_id) from e
        if not file.exists():
            raise SessionNotFound(session_id)
        return file

    def exists(self, session_id: str) -> bool:
        try:
            self._existing(session_id)
        except SessionNotFound:
            return False
        return True

    def load(self, session_id: str) -> SessionSnapshot:
        file = self._existing(session_id)
        raw = json.loads(file.read_text(encoding="utf-8"))
        return SessionSnapshot.model_validate(raw)

    def save(self, snapshot: SessionSnapshot) -> Path:
        file = self._file(snapshot.session_id)
        file.parent.mkdir(parents=True, exist_ok=True)
        payload = snapshot.model_dump(mode="json")
        tmp = file.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        tmp.replace(file)
        logger.debug("Session saved", extra={"session_id": snapshot.session_id})
        return file

    def delete(self, session_id: str) -> None:
        file = self._existing(session_id)
        file.unlink()

    def list_ids(self) -> list[str]:
        if not self.path.exists():
            return []
        return sorted(p.stem for p in self.path.glob("*.json"))

    def list(self) -> list[SessionSnapshot]:
        """All readable snapshots; unreadable files are skipped with a warning."""

        snapshots: list[SessionSnapshot] = []
        for session_id in self.list_ids():
            try:
                snapshots.append(self.load(session_id))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning(
                    "Skipping unreadable session file",
                    extra={"session_id": session_id, "error": str(e)},
                )
        return snapshots

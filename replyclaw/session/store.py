"""Per-agent store of the last route each session replied through."""

import json
import os
import tempfile
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from threading import RLock
from typing import Any

from loguru import logger

from replyclaw.utils.helpers import get_data_path, safe_filename


@dataclass
class LastRoute:
    """Where a session was last active."""

    session_key: str
    channel: str
    to: str
    account_id: str | None = None
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["updated_at"] = self.updated_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LastRoute":
        raw_ts = data.get("updated_at")
        try:
            updated_at = datetime.fromisoformat(raw_ts) if isinstance(raw_ts, str) else datetime.now()
        except ValueError:
            updated_at = datetime.now()
        return cls(
            session_key=str(data.get("session_key") or ""),
            channel=str(data.get("channel") or ""),
            to=str(data.get("to") or ""),
            account_id=str(data["account_id"]) if data.get("account_id") is not None else None,
            updated_at=updated_at,
        )


class LastRouteStore:
    """
    JSON-file backed store, one file per agent.

    Writes go through a temp file and an atomic replace so a crash never
    leaves a truncated store behind.
    """

    def __init__(self, root: Path | None = None):
        self.root = root or (get_data_path() / "agents")
        self._lock = RLock()

    def _path_for(self, agent_id: str) -> Path:
        return self.root / safe_filename(agent_id) / "last_routes.json"

    def _read(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable last-route store {path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, path: Path, data: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=str(path.parent),
                prefix=f"{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp.write(json.dumps(data, indent=2))
                tmp.flush()
                os.fsync(tmp.fileno())
                tmp_path = Path(tmp.name)
            tmp_path.replace(path)
        except Exception:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink(missing_ok=True)
            raise

    def update_last_route(
        self,
        *,
        agent_id: str,
        session_key: str,
        channel: str,
        to: str,
        account_id: str | None = None,
    ) -> LastRoute:
        """Record the last route for a session and persist it."""
        route = LastRoute(session_key=session_key, channel=channel, to=to, account_id=account_id)
        path = self._path_for(agent_id)
        with self._lock:
            data = self._read(path)
            data[session_key] = route.to_dict()
            self._write(path, data)
        return route

    def get_last_route(self, agent_id: str, session_key: str) -> LastRoute | None:
        with self._lock:
            raw = self._read(self._path_for(agent_id)).get(session_key)
        if not isinstance(raw, dict):
            return None
        return LastRoute.from_dict(raw)

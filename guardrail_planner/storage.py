"""JSON-file storage for named scenarios and calculation history.

Layout under ``root``::

    scenarios.json   [{"name", "plan", "ts"}, ...]        newest first
    history.json     [{"name", "ts", "probability_of_success", ...}, ...]

Saving a scenario under an existing name replaces it.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .calculators.errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_ROOT = Path.home() / ".guardrail_planner"

_SUMMARY_KEYS = (
    "probability_of_success",
    "guardrail_status",
    "spending_adjustment_needed",
    "desired_spending",
    "recommended_spending",
    "model",
)


class ScenarioStore:
    def __init__(self, root: Union[str, Path, None] = None):
        self.root = Path(root) if root is not None else DEFAULT_ROOT

    @property
    def scenarios_path(self) -> Path:
        return self.root / "scenarios.json"

    @property
    def history_path(self) -> Path:
        return self.root / "history.json"

    def _read(self, path: Path) -> List[Dict[str, Any]]:
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Corrupt storage file {path}: {exc}") from exc
        except OSError as exc:
            raise StorageError(f"Could not read {path}: {exc}") from exc
        if not isinstance(data, list):
            raise StorageError(f"Corrupt storage file {path}: expected a list")
        return data

    def _write(self, path: Path, data: List[Dict[str, Any]]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except (OSError, TypeError) as exc:
            raise StorageError(f"Could not write {path}: {exc}") from exc

    # ---- scenarios ----
    def save_scenario(self, name: str, plan: Dict[str, Any]) -> None:
        name = (name or "").strip()
        if not name:
            raise StorageError("Scenario name is required")
        existing = [s for s in self._read(self.scenarios_path) if s.get("name") != name]
        # put newest first
        existing.insert(0, {"name": name, "plan": plan, "ts": time.time()})
        self._write(self.scenarios_path, existing)
        logger.debug("saved scenario %r to %s", name, self.scenarios_path)

    def load_scenario(self, name: str) -> Dict[str, Any]:
        for s in self._read(self.scenarios_path):
            if s.get("name") == name:
                return s["plan"]
        raise StorageError(f"No saved scenario named {name!r}")

    def list_scenarios(self) -> List[Dict[str, Any]]:
        return [{"name": s["name"], "ts": s.get("ts")} for s in self._read(self.scenarios_path)]

    def delete_scenario(self, name: str) -> bool:
        scenarios = self._read(self.scenarios_path)
        kept = [s for s in scenarios if s.get("name") != name]
        if len(kept) == len(scenarios):
            return False
        self._write(self.scenarios_path, kept)
        return True

    # ---- history ----
    def record_calculation(self, name: Optional[str], report: Dict[str, Any]) -> Dict[str, Any]:
        entry = {"name": name, "ts": time.time()}
        entry.update({k: report.get(k) for k in _SUMMARY_KEYS})
        history = self._read(self.history_path)
        history.insert(0, entry)
        self._write(self.history_path, history)
        return entry

    def history(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        entries = self._read(self.history_path)
        return entries if limit is None else entries[:limit]


__all__ = ["ScenarioStore", "DEFAULT_ROOT"]

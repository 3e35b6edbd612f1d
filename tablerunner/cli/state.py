"""State management for CLI - tracks captured sessions and their stats"""

import hashlib
import json
from pathlib import Path
from typing import Dict, Optional, Any, List
from datetime import datetime, timezone
from threading import Lock


def mask_session_key(key: str) -> str:
    """Keep only the ends of a session key for display"""
    if len(key) <= 8:
        return "***"
    return f"{key[:4]}***{key[-4:]}"


def key_fingerprint(key: str) -> str:
    """Stable digest for matching a session key without storing it"""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class StateManager:
    """
    Manages persistent state for CLI

    Tracks sessions in a JSON file so counters and stats survive restarts
    and can be listed from another process.
    """

    def __init__(self, state_file: Optional[str] = None):
        """
        Initialize state manager

        Args:
            state_file: Path to state file (default: ~/.tablerunner/state.json)
        """
        if state_file:
            self.state_file = Path(state_file)
        else:
            self.state_file = Path.home() / ".tablerunner" / "state.json"

        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

        if not self.state_file.exists():
            self._save_state({"sessions": {}})

    def _load_state(self) -> Dict[str, Any]:
        """Load state from file"""
        try:
            with open(self.state_file, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, FileNotFoundError):
            return {"sessions": {}}

    def _save_state(self, state: Dict[str, Any]) -> None:
        """Save state to file"""
        with open(self.state_file, 'w') as f:
            json.dump(state, f, indent=2, default=str)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def register_session(
        self,
        name: str,
        symbol: str,
        origin: str,
        session_key: str,
        **metadata
    ) -> None:
        """
        Register a session (session key stored masked and fingerprinted)

        Args:
            name: Session name
            symbol: Game symbol
            origin: Page origin the capture came from
            session_key: Session key (masked before saving)
            **metadata: Additional metadata
        """
        with self._lock:
            state = self._load_state()
            state["sessions"][name] = {
                "name": name,
                "symbol": symbol,
                "origin": origin,
                "session_key": mask_session_key(session_key),
                "key_fingerprint": key_fingerprint(session_key),
                "created_at": self._now(),
                "status": "running",
                "index": None,
                "counter": None,
                "stats": {},
                **metadata
            }
            self._save_state(state)

    def _update(self, name: str, **changes) -> None:
        """Apply field changes to a recorded session; unknown names are ignored"""
        with self._lock:
            state = self._load_state()
            session = state["sessions"].get(name)
            if session is None:
                return
            session.update(changes, updated_at=self._now())
            self._save_state(state)

    def update_progress(
        self,
        name: str,
        index: Optional[int],
        counter: Optional[int],
        stats: Dict[str, Any]
    ) -> None:
        """Record the latest counters and running stats for a session"""
        self._update(name, index=index, counter=counter, stats=stats)

    def update_status(self, name: str, status: str) -> None:
        """Set status (running, target_reached, stopped, frozen, ...)"""
        self._update(name, status=status)

    def get_session(self, name: str) -> Optional[Dict[str, Any]]:
        state = self._load_state()
        return state["sessions"].get(name)

    def list_sessions(self) -> List[Dict[str, Any]]:
        state = self._load_state()
        return list(state["sessions"].values())

    def unregister_session(self, name: str) -> None:
        with self._lock:
            state = self._load_state()
            if name in state["sessions"]:
                del state["sessions"][name]
                self._save_state(state)

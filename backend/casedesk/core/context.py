# FILE: backend/casedesk/core/context.py
# Per-user data context handed to every case operation.
# Holds the last-error slot and the snapshot cache handle instead of module globals.

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..services.cache_service import SnapshotCache

@dataclass
class DataContext:
    user_id: Optional[str]
    cache: Optional[SnapshotCache] = None
    last_error: Optional[str] = field(default=None)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    def set_error(self, message: str) -> None:
        self.last_error = message

    def clear_error(self) -> None:
        self.last_error = None

    def load_snapshot(self) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        if self.cache is None or not self.user_id:
            return [], []
        return self.cache.load(self.user_id)

    def has_snapshot(self) -> bool:
        if self.cache is None or not self.user_id:
            return False
        return self.cache.has_snapshot(self.user_id)

    def save_cases(self, records: List[Dict[str, Any]]) -> None:
        if self.cache is not None and self.user_id:
            self.cache.save_cases(self.user_id, records)

    def save_hearings(self, records: List[Dict[str, Any]]) -> None:
        if self.cache is not None and self.user_id:
            self.cache.save_hearings(self.user_id, records)

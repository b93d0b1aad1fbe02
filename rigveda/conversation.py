"""
Conversation state and small persistent histories for Rigveda Q&A.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class Message:
    """A single message in the conversation."""
    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    sources: List[str] = field(default_factory=list)  # verse refs, e.g. "10.67.1"


class ConversationState:
    """Maintains conversation context across turns."""

    def __init__(self):
        self.messages: List[Message] = []
        self.recent_sources: List[str] = []  # verse refs, most recent first
        self.current_mandala: Optional[int] = None
        self.current_hymn: Optional[int] = None

    @property
    def is_first_turn(self) -> bool:
        return not self.messages

    def add_user_message(self, content: str):
        """Add a user message to history."""
        self.messages.append(Message(role="user", content=content))

    def add_assistant_message(self, content: str, sources: List[str] = None):
        """Add an assistant message to history."""
        sources = sources or []
        self.messages.append(Message(role="assistant", content=content, sources=sources))

        for source in sources:
            if source in self.recent_sources:
                self.recent_sources.remove(source)
            self.recent_sources.insert(0, source)

        # Keep only last 50 sources
        self.recent_sources = self.recent_sources[:50]

    def pop_last_user_message(self) -> Optional[Message]:
        """Drop a trailing user turn that never got an answer."""
        if self.messages and self.messages[-1].role == "user":
            return self.messages.pop()
        return None

    def get_message_history(self) -> List[dict]:
        """Get message history in format suitable for LLM."""
        return [
            {"role": msg.role, "content": msg.content}
            for msg in self.messages
        ]

    def update_focus(self, mandala: int = None, hymn: int = None):
        """Update current focus of conversation."""
        if mandala:
            self.current_mandala = mandala
        if hymn:
            self.current_hymn = hymn

    def get_sources_for_context(self, n: int = 5) -> List[str]:
        """Get most recent source verse refs."""
        return self.recent_sources[:n]


class KeyValueStore:
    """Persistence port: get(key) -> value or None, set(key, value)."""

    def get(self, key: str) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self):
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value


class JsonFileStore(KeyValueStore):
    """Key-value store kept in a single JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            print(f"Failed to read {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Any:
        return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


DICTIONARY_HISTORY_KEY = "sanskrit_dictionary_history"


class SearchHistory:
    """Most recent distinct queries, newest first."""

    def __init__(self, store: KeyValueStore, key: str = DICTIONARY_HISTORY_KEY, limit: int = 10):
        self.store = store
        self.key = key
        self.limit = limit

    def items(self) -> List[str]:
        stored = self.store.get(self.key)
        if not isinstance(stored, list):
            return []
        return [q for q in stored if isinstance(q, str)]

    def add(self, query: str) -> List[str]:
        """Record a query; blank queries are ignored."""
        if not query or not query.strip():
            return self.items()
        updated = [query] + [q for q in self.items() if q != query]
        updated = updated[: self.limit]
        self.store.set(self.key, updated)
        return updated

    def clear(self) -> None:
        self.store.set(self.key, [])

"""
Main Agent for Rigveda Q&A.
Orchestrates search, context selection, conversation and the chat model.
"""

import random
from typing import List, Optional

from .conversation import ConversationState, KeyValueStore, MemoryStore, SearchHistory
from .generator import ChatClient, DictionaryLookup
from .rag import build_context_message, build_context_snippet, parse_reference, verse_context_prefix
from .search import RigvedaSearch, SearchSession
from .utils.loaders import random_verse
from .utils.types import MatchRecord, SearchIndexEntry


class RigvedaAgent:
    """
    Agent that answers questions about the Rigveda.
    The first question of a conversation carries the best-matching verses
    as inline context; follow-ups are sent as plain turns.
    """

    def __init__(
        self,
        data_path: str = None,
        model: str = None,
        log_dir: Optional[str] = None,
        method: str = "rank",
        context_limit: int = 12,
        search: Optional[RigvedaSearch] = None,
        chat_client: Optional[ChatClient] = None,
        history_store: Optional[KeyValueStore] = None,
    ):
        """
        Initialize the Rigveda agent.

        Args:
            data_path: Path to rigveda_complete.json
            model: Chat model to use
            log_dir: Directory for JSONL logs
            method: Context ranking method, "rank" or "bm25"
            context_limit: Maximum verses sent as context
        """
        self.search = search or RigvedaSearch(data_path)
        self.chat_client = chat_client or ChatClient(model=model, log_dir=log_dir)
        self.dictionary = DictionaryLookup(self.chat_client)
        self.dictionary_history = SearchHistory(history_store or MemoryStore())
        self.session = SearchSession(self.search)
        self.method = method
        self.context_limit = context_limit
        self.state = ConversationState()

    def reset(self):
        """Reset conversation state."""
        self.state = ConversationState()

    def select_context(self, question: str) -> List[SearchIndexEntry]:
        """
        Pick the verses to send along with a question.

        A verse locator ("10.67.1") selects that verse or hymn directly;
        otherwise entries are ranked against the question.
        """
        entries = self.search.lookup_reference(question)
        if entries:
            ref = parse_reference(question)
            self.state.update_focus(mandala=ref["mandala"], hymn=ref["hymn"])
            return entries
        return self.search.rank(question, limit=self.context_limit, method=self.method)

    def _send(self, content: str, sources: List[str]) -> str:
        self.state.add_user_message(content)
        result = self.chat_client.chat(self.state.get_message_history())

        if "error" in result:
            self.state.pop_last_user_message()
            combined = ": ".join(p for p in (result.get("error"), result.get("detail")) if p)
            raise RuntimeError(combined or "Chat failed")

        answer = result.get("answer") or ""
        self.state.add_assistant_message(answer, sources)
        return answer

    def query(self, question: str) -> str:
        """
        Process a user question and return the answer.

        Args:
            question: The user's question

        Returns:
            Answer text
        """
        question = (question or "").strip()
        if not question:
            raise ValueError("Question is empty")

        if not self.state.is_first_turn:
            return self._send(question, [])

        entries = self.select_context(question)
        if not entries:
            return self._send(question, [])

        context = build_context_snippet(entries)
        return self._send(build_context_message(context, question), [e.ref for e in entries])

    # Alias for convenience
    def chat(self, question: str) -> str:
        """Alias for query method."""
        return self.query(question)

    def ask_about_verse(self, verse: dict, question: str = "Explain this verse in detail.") -> str:
        """Start a new conversation about one verse."""
        self.reset()
        ref = f"{verse['mandala']}.{verse['sukta']}.{verse['verse']}"
        self.state.update_focus(mandala=verse["mandala"], hymn=verse["sukta"])
        return self._send(verse_context_prefix(verse) + question, [ref])

    def search_text(self, query: str, result_filter: str = "all") -> List[MatchRecord]:
        """
        Full-text search; results are kept on the agent's search session.

        Args:
            query: Search query
            result_filter: "all", "hymn", "translation" or "transliteration"

        Returns:
            First page of MatchRecord objects for the filter
        """
        self.session.run(query)
        return self.session.set_filter(result_filter)

    def lookup_word(self, word: str) -> List[dict]:
        """
        Look up a Sanskrit word in the dictionary.

        Successful lookups are remembered in the dictionary history.
        """
        results = self.dictionary.lookup(word)
        if results:
            self.dictionary_history.add(word.strip())
        return results

    def random_verse(self, rng: Optional[random.Random] = None) -> Optional[dict]:
        return random_verse(self.search.corpus, rng)

    def list_mandalas(self) -> List[dict]:
        """
        List all mandalas.

        Returns:
            List of mandala summary dictionaries
        """
        return self.search.list_mandalas()

    def get_context_summary(self) -> str:
        """Recent verse refs used as context."""
        return ", ".join(self.state.get_sources_for_context())


def create_agent(data_path: str = None, model: str = None, log_dir: Optional[str] = None, **kwargs) -> RigvedaAgent:
    """
    Factory function to create a Rigveda agent.

    Args:
        data_path: Path to rigveda_complete.json
        model: Chat model to use

    Returns:
        Configured RigvedaAgent instance
    """
    return RigvedaAgent(data_path, model, log_dir=log_dir, **kwargs)

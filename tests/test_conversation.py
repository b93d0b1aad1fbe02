"""
Tests for Rigveda Q&A conversation handling.
Covers conversation state, stored histories and the agent's turn flow
with a mocked chat endpoint.
"""

import sys
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import openai

sys.path.insert(0, str(Path(__file__).parent.parent))

from rigveda.agent import RigvedaAgent
from rigveda.conversation import (
    DICTIONARY_HISTORY_KEY,
    ConversationState,
    JsonFileStore,
    MemoryStore,
    SearchHistory,
)
from rigveda.generator import CONTEXT_INSTRUCTION, ChatClient
from rigveda.search import RigvedaSearch
from rigveda.utils.loaders import load_corpus

FIXTURES = Path(__file__).parent / "fixtures"


class TestConversationState(unittest.TestCase):
    """Test conversation state management."""

    def setUp(self):
        self.state = ConversationState()

    def test_add_messages(self):
        """Test adding messages to history."""
        self.assertTrue(self.state.is_first_turn)
        self.state.add_user_message("Who is Agni?")
        self.state.add_assistant_message("The fire god.", ["1.1.1"])

        self.assertFalse(self.state.is_first_turn)
        self.assertEqual(self.state.get_message_history(), [
            {"role": "user", "content": "Who is Agni?"},
            {"role": "assistant", "content": "The fire god."},
        ])

    def test_recent_sources(self):
        """Test tracking of recent sources."""
        self.state.add_assistant_message("a", ["1.1.1", "1.1.2"])
        self.state.add_assistant_message("b", ["10.67.1", "1.1.1"])

        sources = self.state.get_sources_for_context(3)
        self.assertEqual(sources, ["1.1.1", "10.67.1", "1.1.2"])

    def test_recent_sources_capped(self):
        self.state.add_assistant_message("a", [f"1.1.{i}" for i in range(60)])
        self.assertEqual(len(self.state.recent_sources), 50)
        self.assertEqual(self.state.recent_sources[0], "1.1.59")

    def test_pop_last_user_message(self):
        self.state.add_user_message("q1")
        self.state.add_assistant_message("a1")
        self.assertIsNone(self.state.pop_last_user_message())
        self.state.add_user_message("q2")
        self.assertEqual(self.state.pop_last_user_message().content, "q2")
        self.assertIsNone(self.state.pop_last_user_message())
        self.assertEqual(len(self.state.messages), 2)

    def test_focus_update(self):
        """Test focus updates."""
        self.state.update_focus(mandala=10, hymn=67)
        self.state.update_focus(hymn=None)

        self.assertEqual(self.state.current_mandala, 10)
        self.assertEqual(self.state.current_hymn, 67)


class TestSearchHistory(unittest.TestCase):

    def setUp(self):
        self.store = MemoryStore()
        self.history = SearchHistory(self.store, limit=3)

    def test_newest_first_without_duplicates(self):
        for q in ("agni", "soma", "agni"):
            self.history.add(q)
        self.assertEqual(self.history.items(), ["agni", "soma"])
        self.assertEqual(self.store.get(DICTIONARY_HISTORY_KEY), ["agni", "soma"])

    def test_limit(self):
        for q in ("a", "b", "c", "d"):
            self.history.add(q)
        self.assertEqual(self.history.items(), ["d", "c", "b"])

    def test_blank_ignored(self):
        self.history.add("agni")
        self.assertEqual(self.history.add("  "), ["agni"])

    def test_clear(self):
        self.history.add("agni")
        self.history.clear()
        self.assertEqual(self.history.items(), [])

    def test_malformed_store_value(self):
        self.store.set(DICTIONARY_HISTORY_KEY, "agni")
        self.assertEqual(self.history.items(), [])


class TestJsonFileStore(unittest.TestCase):

    def test_persists_between_instances(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "history.json"
            SearchHistory(JsonFileStore(path)).add("agni")
            self.assertEqual(SearchHistory(JsonFileStore(path)).items(), ["agni"])

    def test_missing_and_corrupt_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "history.json"
            store = JsonFileStore(path)
            self.assertIsNone(store.get("k"))
            path.write_text("{broken", encoding="utf-8")
            self.assertIsNone(store.get("k"))
            store.set("k", [1])
            self.assertEqual(store.get("k"), [1])


class TestRigvedaAgent(unittest.TestCase):
    """Turn flow of the agent against a mocked chat endpoint."""

    def setUp(self):
        self.fake = MagicMock()
        self.fake.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="An answer."))]
        )
        search = RigvedaSearch(corpus=load_corpus(FIXTURES / "sample_corpus.json"))
        self.agent = RigvedaAgent(
            search=search,
            chat_client=ChatClient(model="test-model", api_key="k", client=self.fake),
        )

    def sent_messages(self):
        return self.fake.chat.completions.create.call_args.kwargs["messages"]

    def test_first_turn_carries_context(self):
        answer = self.agent.query("Who is Agni?")

        self.assertEqual(answer, "An answer.")
        first = self.agent.state.messages[0].content
        self.assertTrue(first.startswith("CONTEXT\n(1.1.1) "))
        self.assertTrue(first.endswith("\n\nQUESTION: Who is Agni?"))

        sent = self.sent_messages()
        self.assertTrue(sent[1]["content"].startswith(CONTEXT_INSTRUCTION + "(1.1.1)"))
        self.assertEqual(sent[-1], {"role": "user", "content": "Who is Agni?"})
        self.assertIn("1.1.1", self.agent.get_context_summary())

    def test_follow_up_is_plain(self):
        self.agent.query("Who is Agni?")
        self.agent.query("And what about Vayu?")

        history = self.agent.state.get_message_history()
        self.assertEqual(len(history), 4)
        self.assertEqual(history[2], {"role": "user", "content": "And what about Vayu?"})

        sent = self.sent_messages()
        # Context from the first turn is still supplied.
        self.assertTrue(sent[1]["content"].startswith(CONTEXT_INSTRUCTION))
        self.assertEqual(sent[-1], {"role": "user", "content": "And what about Vayu?"})

    def test_no_matching_verses(self):
        self.agent.query("xyzzy?")
        self.assertEqual(self.agent.state.messages[0].content, "xyzzy?")
        self.assertEqual(self.sent_messages()[1], {"role": "user", "content": "xyzzy?"})

    def test_question_mentioning_context_is_sent(self):
        self.agent.query("xyzzy CONTEXT?")
        sent = self.sent_messages()
        self.assertEqual(len(sent), 2)
        self.assertEqual(sent[1], {"role": "user", "content": "xyzzy CONTEXT?"})

    def test_reference_question(self):
        self.agent.query("10.67.1")
        self.assertIn("(10.67.1) This holy hymn", self.agent.state.messages[0].content)
        self.assertEqual(self.agent.state.current_mandala, 10)
        self.assertEqual(self.agent.state.current_hymn, 67)

    def test_error_drops_unanswered_turn(self):
        self.fake.chat.completions.create.side_effect = openai.OpenAIError("boom")
        with self.assertRaises(RuntimeError) as ctx:
            self.agent.query("Who is Agni?")
        self.assertEqual(str(ctx.exception), "LLM error: boom")
        self.assertTrue(self.agent.state.is_first_turn)

    def test_blank_question(self):
        with self.assertRaises(ValueError):
            self.agent.query("   ")
        self.fake.chat.completions.create.assert_not_called()

    def test_reset(self):
        self.agent.query("Who is Agni?")
        self.agent.reset()
        self.assertTrue(self.agent.state.is_first_turn)

    def test_ask_about_verse(self):
        verse = {
            "mandala": 1,
            "sukta": 2,
            "verse": "1",
            "title": "Vayu",
            "devanagari_text": "वायवा याहि",
            "padapatha_text": "vā́yav ā́ yāhi",
            "translation": "Beautiful Vayu, come",
        }
        self.agent.ask_about_verse(verse, "What is asked of Vayu?")
        sent = self.sent_messages()
        self.assertEqual(
            sent[1]["content"],
            CONTEXT_INSTRUCTION + "(1.2.1) वायवा याहि\n(vā́yav ā́ yāhi)\nBeautiful Vayu, come",
        )
        self.assertEqual(sent[-1], {"role": "user", "content": "What is asked of Vayu?"})
        self.assertEqual(self.agent.get_context_summary(), "1.2.1")

    def test_search_text(self):
        results = self.agent.search_text("agni", "translation")
        self.assertEqual([r.verse for r in results], ["1", "2"])
        self.assertFalse(self.agent.session.has_more)

    def test_lookup_word_records_history(self):
        self.fake.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content='{"english": "fire"}'))]
        )
        entries = self.agent.lookup_word(" agni ")
        self.assertEqual(entries[0]["english"], "fire")
        self.assertEqual(self.agent.dictionary_history.items(), ["agni"])

    def test_failed_lookup_not_recorded(self):
        self.fake.chat.completions.create.side_effect = openai.OpenAIError("down")
        self.assertEqual(self.agent.lookup_word("agni"), [])
        self.assertEqual(self.agent.dictionary_history.items(), [])

    def test_list_mandalas(self):
        self.assertEqual([m["mandala"] for m in self.agent.list_mandalas()], [1, 10])


if __name__ == "__main__":
    unittest.main()

"""
Tests for the chat and dictionary collaborators.
The chat endpoint is always mocked.
"""

import json
import os
import sys
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import openai

sys.path.insert(0, str(Path(__file__).parent.parent))

from rigveda.generator import (
    CONTEXT_INSTRUCTION,
    SYSTEM_PROMPT,
    ChatClient,
    DictionaryLookup,
    parse_dictionary_answer,
    split_context,
)


def completion(content: str):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def mock_client(content: str = "Agni is the god of fire.") -> MagicMock:
    client = MagicMock()
    client.chat.completions.create.return_value = completion(content)
    return client


class TestSplitContext(unittest.TestCase):

    def test_context_message(self):
        context, messages = split_context([
            {"role": "user", "content": "CONTEXT\n(1.1.1) agni\n\nQUESTION: Who is Agni?"},
        ])
        self.assertEqual(context, "(1.1.1) agni")
        self.assertEqual(messages, [{"role": "user", "content": "Who is Agni?"}])

    def test_marker_is_case_insensitive(self):
        context, messages = split_context([
            {"role": "user", "content": "CONTEXT\n(1.1.1) agni\n\nquestion : Who?"},
        ])
        self.assertEqual(context, "(1.1.1) agni")
        self.assertEqual(messages[0]["content"], "Who?")

    def test_first_question_mentioning_context(self):
        history = [{"role": "user", "content": "xyzzy CONTEXT?"}]
        context, messages = split_context(history)
        self.assertIsNone(context)
        self.assertEqual(messages, history)

    def test_context_without_question_marker(self):
        history = [{"role": "user", "content": "Context of hymn 10.67?"}]
        self.assertEqual(split_context(history), (None, history))

    def test_plain_messages_pass_through(self):
        history = [
            {"role": "user", "content": "Who is Agni?"},
            {"role": "assistant", "content": "The fire god."},
            {"role": "user", "content": "CONTEXT is only special in the first turn"},
        ]
        context, messages = split_context(history)
        self.assertIsNone(context)
        self.assertEqual(messages, history)


class TestChatClient(unittest.TestCase):

    def test_build_messages(self):
        """Context becomes a second system message ahead of the conversation."""
        client = ChatClient(model="test-model", api_key="k", client=mock_client())
        out = client.build_messages(
            [{"role": "user", "content": "CONTEXT\n(1.1.1) agni\n\nQUESTION: Who is Agni?"}],
            query="And Indra?",
        )
        self.assertEqual(out[0], {"role": "system", "content": SYSTEM_PROMPT})
        self.assertEqual(out[1], {"role": "system", "content": CONTEXT_INSTRUCTION + "(1.1.1) agni"})
        self.assertEqual(out[2:], [
            {"role": "user", "content": "Who is Agni?"},
            {"role": "user", "content": "And Indra?"},
        ])

    def test_chat_success(self):
        fake = mock_client("Agni is the god of fire.")
        client = ChatClient(model="test-model", api_key="k", client=fake, temperature=0.3, max_tokens=2000)
        result = client.chat([{"role": "user", "content": "Who is Agni?"}])

        self.assertEqual(result, {"answer": "Agni is the god of fire.", "refs": []})
        kwargs = fake.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "test-model")
        self.assertEqual(kwargs["temperature"], 0.3)
        self.assertEqual(kwargs["max_tokens"], 2000)
        self.assertEqual(kwargs["messages"][-1], {"role": "user", "content": "Who is Agni?"})

    def test_missing_api_key(self):
        with patch.dict(os.environ, {}, clear=True):
            client = ChatClient()
        self.assertIsNone(client.client)
        self.assertEqual(client.chat([{"role": "user", "content": "hi"}]), {"error": "Missing OPENROUTER_API_KEY"})

    def test_env_configuration(self):
        env = {"OPENROUTER_API_KEY": "k", "OPENROUTER_MODEL": "some/model"}
        with patch.dict(os.environ, env, clear=True):
            client = ChatClient(client=mock_client())
        self.assertEqual(client.model, "some/model")
        self.assertEqual(client.api_key, "k")
        self.assertEqual(client.base_url, "https://openrouter.ai/api/v1")

    def test_llm_error(self):
        fake = MagicMock()
        fake.chat.completions.create.side_effect = openai.OpenAIError("rate limited")
        client = ChatClient(api_key="k", client=fake)
        result = client.chat([{"role": "user", "content": "hi"}])
        self.assertEqual(result["error"], "LLM error")
        self.assertEqual(result["detail"], "rate limited")

    def test_unexpected_error(self):
        fake = MagicMock()
        fake.chat.completions.create.side_effect = KeyError("choices")
        client = ChatClient(api_key="k", client=fake)
        self.assertEqual(client.chat([{"role": "user", "content": "hi"}])["error"], "Unexpected error")

    def test_empty_choices(self):
        fake = MagicMock()
        fake.chat.completions.create.return_value = SimpleNamespace(choices=[])
        client = ChatClient(api_key="k", client=fake)
        self.assertEqual(client.chat([{"role": "user", "content": "hi"}]), {"answer": "", "refs": []})

    def test_jsonl_log(self):
        response = MagicMock()
        response.choices = [SimpleNamespace(message=SimpleNamespace(content="ok"))]
        response.model_dump.return_value = {"id": "resp-1"}
        fake = MagicMock()
        fake.chat.completions.create.return_value = response

        with tempfile.TemporaryDirectory() as tmp:
            client = ChatClient(api_key="k", client=fake, log_dir=tmp)
            client.chat([{"role": "user", "content": "hi"}])
            lines = (Path(tmp) / "responses.jsonl").read_text(encoding="utf-8").splitlines()

        self.assertEqual(len(lines), 2)
        self.assertIn("messages", json.loads(lines[0]))
        self.assertEqual(json.loads(lines[1]), {"response": {"id": "resp-1"}})


class TestDictionary(unittest.TestCase):

    def test_parse_json_answer(self):
        answer = 'Here you go:\n{"sanskrit": "अग्नि", "transliteration": "agni", "english": "fire", "grammar": "noun"}'
        entry = parse_dictionary_answer("agni", answer)
        self.assertEqual(entry["sanskrit"], "अग्नि")
        self.assertEqual(entry["english"], "fire")
        self.assertEqual(entry["etymology"], "")
        self.assertEqual(entry["source"], "AI Sanskrit Scholar")
        self.assertEqual(entry["dictionary"], "AI")

    def test_parse_fills_defaults(self):
        entry = parse_dictionary_answer("soma", "{}")
        self.assertEqual(entry["sanskrit"], "soma")
        self.assertEqual(entry["english"], "Meaning not available")
        self.assertEqual(entry["grammar"], "Not specified")

    def test_parse_falls_back_to_text(self):
        entry = parse_dictionary_answer("soma", "Soma is the sacred drink.")
        self.assertEqual(entry["english"], "Soma is the sacred drink.")
        self.assertEqual(entry["grammar"], "AI Analysis")
        self.assertNotIn("etymology", entry)

    def test_parse_invalid_json(self):
        entry = parse_dictionary_answer("soma", "{not json}")
        self.assertEqual(entry["grammar"], "AI Analysis")

    def test_lookup(self):
        fake = mock_client('{"sanskrit": "सोम", "english": "pressed juice"}')
        lookup = DictionaryLookup(ChatClient(api_key="k", client=fake))
        entries = lookup.lookup("  soma ")
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0]["transliteration"], "soma")
        prompt = fake.chat.completions.create.call_args.kwargs["messages"][-1]["content"]
        self.assertIn('"soma"', prompt)

    def test_blank_word(self):
        lookup = DictionaryLookup(ChatClient(api_key="k", client=mock_client()))
        with self.assertRaises(ValueError):
            lookup.lookup("   ")

    def test_chat_error_gives_no_entries(self):
        fake = MagicMock()
        fake.chat.completions.create.side_effect = openai.OpenAIError("down")
        lookup = DictionaryLookup(ChatClient(api_key="k", client=fake))
        self.assertEqual(lookup.lookup("soma"), [])


if __name__ == "__main__":
    unittest.main()

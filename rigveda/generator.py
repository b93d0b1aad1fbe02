"""
Chat and dictionary collaborators for Rigveda Q&A.
Talks to an OpenAI-compatible endpoint (OpenRouter by default).
"""

import json
import os
import re
from pathlib import Path
from typing import List, Optional, Tuple

import openai
from openai import OpenAI


SYSTEM_PROMPT = (
    "You are a helpful, concise assistant that ONLY answers questions about the Rigveda. "
    "If a question is outside the Rigveda, politely refuse and explain you can only discuss the Rigveda. "
    "Avoid speculation and do not fabricate citations."
)

CONTEXT_INSTRUCTION = "Use ONLY this Rigveda verse/context:\n"

DEFAULT_MODEL = "x-ai/grok-4-fast:free"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"

_QUESTION_SPLIT_RE = re.compile(r"QUESTION\s*:\s*", re.IGNORECASE)
_CONTEXT_LEAD_RE = re.compile(r"^\s*CONTEXT\s*", re.IGNORECASE)
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def _is_context_message(content: str) -> bool:
    return bool(_CONTEXT_LEAD_RE.match(content)) and bool(_QUESTION_SPLIT_RE.search(content))


def split_context(messages: List[dict]) -> Tuple[Optional[str], List[dict]]:
    """
    Pull inline context out of the first user message.

    A first message that starts with CONTEXT and carries a QUESTION marker,
    "CONTEXT\\n<ctx>\\n\\nQUESTION: <q>", is replaced by a plain user
    message with <q>; <ctx> is returned separately. Other messages pass
    through unchanged.

    Returns:
        Tuple of (context or None, normalized messages)
    """
    context = None
    normalized: List[dict] = []

    for i, m in enumerate(messages):
        content = m.get("content") or ""
        if i == 0 and m.get("role") == "user" and _is_context_message(content):
            parts = _QUESTION_SPLIT_RE.split(content)
            ctx = _CONTEXT_LEAD_RE.sub("", parts[0], count=1).strip()
            if ctx:
                context = ctx
            question = "QUESTION:".join(parts[1:]).strip()
            if question:
                normalized.append({"role": "user", "content": question})
            continue
        normalized.append({"role": m.get("role"), "content": content})

    return context, normalized


class ChatClient:
    """Sends conversations to the chat model and returns answer payloads."""

    def __init__(
        self,
        model: str = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        log_dir: Optional[str] = None,
        client=None,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ):
        """
        Initialize the chat client.

        Args:
            model: Model name (default from OPENROUTER_MODEL)
            api_key: API key (default from OPENROUTER_API_KEY / OPENAI_API_KEY)
            base_url: API base URL (default from OPENROUTER_BASE_URL)
            log_dir: Directory for the JSONL response log
            client: Preconfigured OpenAI-compatible client
        """
        self.model = model or os.getenv("OPENROUTER_MODEL", DEFAULT_MODEL)
        self.api_key = api_key or os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY")
        self.base_url = base_url or os.getenv("OPENROUTER_BASE_URL", DEFAULT_BASE_URL)
        self.temperature = temperature
        self.max_tokens = max_tokens

        if client is not None:
            self.client = client
        elif self.api_key:
            headers = {}
            if os.getenv("OPENROUTER_SITE_URL"):
                headers["HTTP-Referer"] = os.getenv("OPENROUTER_SITE_URL")
            if os.getenv("OPENROUTER_SITE_NAME"):
                headers["X-Title"] = os.getenv("OPENROUTER_SITE_NAME")
            self.client = OpenAI(api_key=self.api_key, base_url=self.base_url, default_headers=headers or None)
        else:
            self.client = None

        self.log_dir = Path(log_dir) if log_dir else None
        if self.log_dir:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self.response_log_path = self.log_dir / "responses.jsonl"
        else:
            self.response_log_path = None

    def _write_jsonl(self, path: Optional[Path], payload: dict) -> None:
        if not path:
            return
        try:
            with path.open("a", encoding="utf-8") as f:
                # JSONL requires a single line per record.
                f.write(json.dumps(payload, ensure_ascii=False) + "\n")
        except Exception as e:
            print(f"Failed to write log entry: {e}")
            print(payload)

    def _make_json_safe(self, obj):
        if isinstance(obj, dict):
            return {k: self._make_json_safe(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [self._make_json_safe(v) for v in obj]
        if hasattr(obj, "model_dump"):
            try:
                return obj.model_dump()
            except Exception:
                pass
        return obj

    def build_messages(self, messages: List[dict], query: Optional[str] = None) -> List[dict]:
        """System instruction, extracted context, then the conversation."""
        context, normalized = split_context(messages)
        if query:
            normalized.append({"role": "user", "content": query})

        out = [{"role": "system", "content": SYSTEM_PROMPT}]
        if context:
            out.append({"role": "system", "content": CONTEXT_INSTRUCTION + context})
        out.extend(normalized)
        return out

    def chat(self, messages: List[dict], query: Optional[str] = None) -> dict:
        """
        Ask the chat model.

        Args:
            messages: Conversation turns [{"role": "user"|"assistant", "content": ...}]
            query: Optional extra user turn appended at the end

        Returns:
            {"answer": str, "refs": []} on success, or
            {"error": str, "detail": str} on failure
        """
        if self.client is None:
            return {"error": "Missing OPENROUTER_API_KEY"}

        payload = self.build_messages(messages, query)
        self._write_jsonl(self.response_log_path, {"model": self.model, "messages": payload})

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=payload,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as e:
            self._write_jsonl(self.response_log_path, {"error": "LLM error", "detail": str(e)})
            return {"error": "LLM error", "detail": str(e) or "empty response"}
        except Exception as e:
            self._write_jsonl(self.response_log_path, {"error": "Unexpected error", "detail": str(e)})
            return {"error": "Unexpected error", "detail": str(e)}

        self._write_jsonl(self.response_log_path, {"response": self._make_json_safe(response)})

        choices = getattr(response, "choices", None) or []
        answer = ""
        if choices and choices[0].message is not None:
            answer = choices[0].message.content or ""
        return {"answer": answer, "refs": []}


DICTIONARY_PROMPT = """You are a Sanskrit scholar and expert in Vedic literature. Provide a comprehensive dictionary entry for the Sanskrit word "{word}".

Please provide the response in the following JSON format:
{{
  "sanskrit": "Sanskrit word in Devanagari script",
  "transliteration": "Roman transliteration",
  "english": "English meaning and definition",
  "grammar": "Grammatical information (noun, verb, etc.)",
  "etymology": "Brief etymology if known"
}}

Focus on:
1. Accurate Sanskrit script in Devanagari
2. Proper transliteration
3. Comprehensive English meaning
4. Grammatical classification
5. Etymology and word origins

If the word is not found or unclear, provide the best possible interpretation based on Sanskrit linguistics."""


class DictionaryLookup:
    """Sanskrit dictionary backed by the chat model."""

    def __init__(self, chat_client: ChatClient):
        self.chat_client = chat_client

    def lookup(self, word: str) -> List[dict]:
        """
        Look up a Sanskrit word.

        Args:
            word: Word in Devanagari or transliteration

        Returns:
            List with one entry dict, or an empty list if the model failed
        """
        if not word or not word.strip():
            raise ValueError("Word parameter is required")
        word = word.strip()

        result = self.chat_client.chat([{"role": "user", "content": DICTIONARY_PROMPT.format(word=word)}])
        if "error" in result:
            print(f"AI Dictionary error: {result['error']}: {result.get('detail', '')}")
            return []

        answer = result.get("answer", "")
        entry = parse_dictionary_answer(word, answer)
        return [entry]


def parse_dictionary_answer(word: str, answer: str) -> dict:
    """Read the JSON object out of a model answer, falling back to raw text."""
    match = _JSON_OBJECT_RE.search(answer or "")
    if match:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            print("Failed to parse AI JSON response, using text response")
        else:
            if isinstance(parsed, dict):
                return {
                    "sanskrit": parsed.get("sanskrit") or word,
                    "english": parsed.get("english") or "Meaning not available",
                    "transliteration": parsed.get("transliteration") or word,
                    "grammar": parsed.get("grammar") or "Not specified",
                    "etymology": parsed.get("etymology") or "",
                    "source": "AI Sanskrit Scholar",
                    "dictionary": "AI",
                }

    return {
        "sanskrit": word,
        "english": answer,
        "transliteration": word,
        "grammar": "AI Analysis",
        "source": "AI Sanskrit Scholar",
        "dictionary": "AI",
    }

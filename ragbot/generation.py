from __future__ import annotations

import json
import logging
from typing import List

import httpx

from .config import Settings, settings as default_settings
from .errors import GenerationError
from .utils import get_tokenizer, sliding_token_windows


logger = logging.getLogger(__name__)

NOT_FOUND_ANSWER = "INFO NOT FOUND"


def assemble_facts(passages: List[str], max_tokens: int = 3000) -> str:
	"""Join passages as a ``====`` separated fact list within a token budget."""
	enc = get_tokenizer()
	budget = max_tokens
	parts: List[str] = []
	for text in passages:
		segment = f"==== {text}"
		seg_tokens = len(enc.encode(segment))
		if seg_tokens > budget:
			if budget <= 1:
				break
			segment = "==== " + sliding_token_windows(text, budget - 1, 0, enc=enc)[0][2]
			parts.append(segment)
			break
		parts.append(segment)
		budget -= seg_tokens
	return "\n".join(parts)


def build_prompt(question: str, facts: str) -> str:
	return (
		"Facts:\n"
		f"{facts}\n"
		"======\n"
		"Given only the facts above, provide a comprehensive answer.\n"
		"You don't know where the knowledge comes from, just answer.\n"
		f"If you don't have sufficient information, reply with '{NOT_FOUND_ANSWER}'.\n"
		f"Question: {question}\n"
		"Answer: "
	)


class ChatCompletionsClient:
	"""Minimal client for an OpenAI-compatible /chat/completions endpoint."""

	def __init__(self, api_key: str, cfg: Settings | None = None):
		self._api_key = api_key
		self._settings = cfg or default_settings

	def complete(self, prompt: str) -> str:
		headers = {
			"Authorization": f"Bearer {self._api_key}",
			"Content-Type": "application/json",
		}
		body = {
			"model": self._settings.llm_model_id,
			"temperature": self._settings.llm_temperature,
			"max_tokens": self._settings.llm_max_tokens,
			"messages": [
				{"role": "system", "content": "You are a helpful, precise assistant."},
				{"role": "user", "content": prompt},
			],
		}
		try:
			with httpx.Client(timeout=httpx.Timeout(self._settings.llm_timeout)) as client:
				resp = client.post(self._settings.llm_endpoint, headers=headers, content=json.dumps(body))
				resp.raise_for_status()
				data = resp.json()
		except (httpx.HTTPError, ValueError) as exc:
			raise GenerationError(f"Chat completion request failed: {exc}") from exc
		try:
			return data["choices"][0]["message"]["content"].strip()
		except (KeyError, IndexError, TypeError, AttributeError) as exc:
			raise GenerationError(f"Unexpected chat completion payload: {data!r}") from exc

	def answer(self, question: str, passages: List[str]) -> str:
		prompt = build_prompt(question, assemble_facts(passages))
		logger.debug("Prompting %s with %d passages", self._settings.llm_model_id, len(passages))
		return self.complete(prompt)

"""Persona chat replies built on OpenAI Responses."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from openai import AsyncOpenAI

from models.signal_models import Utterance
from services.ai.prompts import persona_system_prompt
from services.ai.response_parser import extract_text, extract_usage

LOGGER = logging.getLogger(__name__)

_VISITOR_ROLES = ("user", "visitor")


class ResponderError(RuntimeError):
	"""The AI collaborator could not produce a reply."""


def _as_input(history: Sequence[Utterance]) -> List[Dict[str, object]]:
	items: List[Dict[str, object]] = []
	for msg in history:
		if msg.role in _VISITOR_ROLES:
			items.append({"type": "message", "role": "user", "content": [{"type": "input_text", "text": msg.content}]})
		else:
			items.append({"type": "message", "role": "assistant", "content": [{"type": "output_text", "text": msg.content}]})
	return items


class PersonaResponder:
	"""Answer visitor turns while no operator is live."""

	def __init__(self, client: AsyncOpenAI, *, model: str = "gpt-4.1-mini", operator_name: str = "the operator") -> None:
		if client is None:
			raise ValueError("AsyncOpenAI client is required.")
		self.client = client
		self.model = model
		self.operator_name = operator_name

	async def reply(
		self,
		history: Sequence[Utterance],
		*,
		declared_context: Optional[str] = None,
		max_tokens: int = 600,
	) -> str:
		"""Return the persona's answer to the last visitor message in `history`."""
		try:
			response = await self.client.responses.create(
				model=self.model,
				input=[
					{
						"type": "message",
						"role": "system",
						"content": [{"type": "input_text", "text": persona_system_prompt(self.operator_name, declared_context)}],
					},
					*_as_input(history),
				],
				max_output_tokens=max_tokens,
			)
		except Exception as exc:
			raise ResponderError(f"AI reply failed: {exc}") from exc

		text = extract_text(response).strip()
		if not text:
			raise ResponderError("AI reply was empty.")
		LOGGER.debug("Persona reply usage: %s", extract_usage(response))
		return text

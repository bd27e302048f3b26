"""Prompt helpers for the portfolio persona."""

from __future__ import annotations

from typing import Optional


def persona_system_prompt(operator_name: str, declared_context: Optional[str] = None) -> str:
	"""Return the persona system prompt, grounded in any visitor-declared context."""
	prompt = (
		f"You are the AI assistant on {operator_name}'s portfolio site, speaking on their behalf. "
		"Answer questions about their projects, skills and experience concisely and honestly. "
		"Never invent availability dates, salary expectations or contact details; say that "
		f"{operator_name} can answer those personally and may join the chat. "
		"Reply in the language the visitor writes in."
	)
	if declared_context:
		prompt += f"\n\nVisitor context (recruiter info or job description):\n{declared_context}"
	return prompt

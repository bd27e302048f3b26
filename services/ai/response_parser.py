"""Helpers to extract text from Responses API output."""

from __future__ import annotations

from typing import Any, Dict, Optional


def _get(item: Any, key: str, default: Any = None) -> Any:
	if isinstance(item, dict):
		return item.get(key, default)
	return getattr(item, key, default)


def extract_text(response: Any) -> str:
	"""Extract the first output_text entry from the response."""
	for item in _get(response, "output", None) or []:
		if _get(item, "type") != "message":
			continue
		for content in _get(item, "content", None) or []:
			if _get(content, "type") == "output_text":
				return _get(content, "text", "") or ""
	return _get(response, "output_text", "") or ""


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
	"""Return token usage if present."""
	usage = _get(response, "usage", None)
	return {
		"input_tokens": _get(usage, "input_tokens", None) if usage else None,
		"output_tokens": _get(usage, "output_tokens", None) if usage else None,
	}

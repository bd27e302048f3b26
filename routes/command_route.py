"""Inbound endpoint for the chat-ops tool (events API and slash commands)."""

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from services.operator.command_channel import CommandChannel

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/operator")


@router.post("/events")
async def operator_events_route(request: Request):
	"""Always acknowledge with 200; failures are only logged."""
	channel: CommandChannel = request.app.state.command_channel
	raw_body = await request.body()

	if not channel.verify_signature(
		raw_body,
		request.headers.get("X-Slack-Request-Timestamp"),
		request.headers.get("X-Slack-Signature"),
	):
		LOGGER.warning("Rejected chat-ops event with invalid signature")
		return PlainTextResponse("ok")

	content_type = request.headers.get("content-type", "")
	try:
		if content_type.startswith("application/x-www-form-urlencoded"):
			form = await request.form()
			outcome = await channel.handle_slash_command({key: str(value) for key, value in form.items()})
		else:
			payload = json.loads(raw_body or b"{}")
			if not isinstance(payload, dict):
				raise ValueError("event body must be a JSON object")
			outcome = await channel.handle_event(payload)
	except Exception as exc:
		LOGGER.warning("Malformed chat-ops event: %s", exc)
		return PlainTextResponse("ok")

	if outcome.challenge is not None:
		return JSONResponse({"challenge": outcome.challenge})
	return PlainTextResponse("ok")

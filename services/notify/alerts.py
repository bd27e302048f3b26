"""Build human-readable operator alerts as chat-ops block payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

EXCERPT_MESSAGES = 5
EXCERPT_CHARS = 200
CONTEXT_CHARS = 500


class AlertKind(str, Enum):
    FIRST_QUESTION = "first_question"
    INTERVENTION = "intervention"
    HOT_LEAD = "hot_lead"
    PREDICTIVE = "predictive"


_HEADERS = {
    AlertKind.FIRST_QUESTION: "New visitor question",
    AlertKind.INTERVENTION: "Intervention moment",
    AlertKind.HOT_LEAD: "Hot lead detected",
    AlertKind.PREDICTIVE: "Heads up: next question",
}

_TRIGGER_LABELS = {
    "recruiter_detected": "Recruiter detected",
    "availability_question": "Availability question",
    "salary_question": "Salary question",
    "resume_request": "Resume request",
    "contact_request": "Contact request",
    "high_interest": "High interest",
    "deep_technical": "Deep technical conversation",
    "predictive_signal": "Predictive signal",
    "none": "High engagement",
}

_SPEAKERS = {"user": "Visitor", "visitor": "Visitor", "ai": "AI", "assistant": "AI", "operator": "Operator"}


def reply_instructions(session_id: str) -> str:
    """The convention an operator must follow to target this session."""
    return (
        f"Reply `/join {session_id}` to take over, `[{session_id}] your message` to answer "
        f"directly, `/leave {session_id}` to hand back to the AI."
    )


def conversation_excerpt(messages: Iterable[Mapping[str, Any]]) -> str:
    lines = []
    for msg in list(messages)[-EXCERPT_MESSAGES:]:
        content = str(msg.get("content", ""))
        if len(content) > EXCERPT_CHARS:
            content = content[:EXCERPT_CHARS] + "..."
        speaker = _SPEAKERS.get(str(msg.get("role", "")), str(msg.get("role", "")).title() or "Unknown")
        lines.append(f"{speaker}: {content}")
    return "\n".join(lines) if lines else "No messages yet"


def _field(title: str, value: str) -> Dict[str, str]:
    return {"type": "mrkdwn", "text": f"*{title}:*\n{value}"}


def _section(text: str) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def build_alert(
    kind: AlertKind,
    session_id: str,
    payload: Mapping[str, Any],
    *,
    at: Optional[datetime] = None,
    site_url: str = "",
) -> Dict[str, Any]:
    """Return `{"text": ..., "blocks": [...]}` for the outbound webhook.

    Blocks are ordered: header, key fields, optional context, conversation
    excerpt, reply instructions and an optional link to the site.
    """
    at = at or datetime.now(timezone.utc)
    header = _HEADERS[kind]
    auto_escalated = bool(payload.get("auto_escalated"))
    if kind is AlertKind.INTERVENTION and auto_escalated:
        header = "Auto-escalated: session is live"

    fields = [_field("Session", f"`{session_id}`"), _field("Time", at.strftime("%Y-%m-%d %H:%M:%S %Z").strip())]
    if kind is AlertKind.INTERVENTION:
        trigger = str(payload.get("trigger") or "none")
        fields.append(_field("Trigger", _TRIGGER_LABELS.get(trigger, trigger)))
        fields.append(_field("Auto-escalated", "yes" if auto_escalated else "no"))
    elif kind is AlertKind.HOT_LEAD:
        fields.append(_field("Intent", str(payload.get("summary") or "Hot lead")))
        signals = [str(s) for s in payload.get("signals") or []][:3]
        fields.append(_field("Signals", ", ".join(signals) or "none"))
    elif kind is AlertKind.PREDICTIVE:
        fields.append(_field("Likely next", str(payload.get("prediction") or "unknown")))

    blocks: List[Dict[str, Any]] = [
        {"type": "header", "text": {"type": "plain_text", "text": header, "emoji": True}},
        {"type": "section", "fields": fields},
    ]

    declared = payload.get("declared_context")
    if declared:
        declared = str(declared)
        if len(declared) > CONTEXT_CHARS:
            declared = declared[:CONTEXT_CHARS] + "..."
        blocks.append(_section(f"*Context provided:*\n{declared}"))

    if kind is AlertKind.FIRST_QUESTION:
        blocks.append(_section(f"*Question:*\n{payload.get('question', '')}"))
    else:
        excerpt = conversation_excerpt(payload.get("recent_messages") or [])
        blocks.append(_section(f"*Recent conversation:*\n```{excerpt}```"))

    instructions = reply_instructions(session_id)
    if auto_escalated:
        instructions = "The AI has stopped answering this visitor. " + instructions
    blocks.append({"type": "context", "elements": [{"type": "mrkdwn", "text": instructions}]})

    if site_url:
        blocks.append(
            {
                "type": "actions",
                "elements": [
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": "Open site", "emoji": True},
                        "url": site_url,
                        "action_id": "open_site",
                    }
                ],
            }
        )

    return {"text": f"{header} [{session_id}]", "blocks": blocks}

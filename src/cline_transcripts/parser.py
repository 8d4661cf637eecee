"""Load a Cline task directory and compute its session summary."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

UI_MESSAGES_FILE = "ui_messages.json"
API_HISTORY_FILE = "api_conversation_history.json"
METADATA_FILE = "task_metadata.json"

TASK_PREVIEW_LENGTH = 200

# Subtypes that do not count as activity when working out when a session ended.
# Resumed tasks in particular can be appended days after the work finished.
NOISE_SUBTYPES = {
    "resume_completed_task",
    "resume_task",
    "task_progress",
    "checkpoint_created",
    "api_req_started",
}


class ConversationFormatError(Exception):
    """Raised when the required conversation file is missing or malformed."""

    pass


@dataclass(frozen=True)
class RawEvent:
    """One entry from ui_messages.json."""

    ts: int
    type: str  # "say" or "ask"
    subtype: str
    text: str = ""
    images: Tuple[str, ...] = ()
    model_info: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data):
        """Normalize a raw JSON record, tolerating missing or odd fields."""
        if not isinstance(data, dict):
            data = {}
        subtype = data.get("say") or data.get("ask") or "unknown"
        text = data.get("text")
        images = data.get("images")
        model_info = data.get("modelInfo")
        ts = data.get("ts", 0)
        return cls(
            ts=int(ts) if isinstance(ts, (int, float)) and not isinstance(ts, bool) else 0,
            type=data.get("type", "say"),
            subtype=str(subtype),
            text=text if isinstance(text, str) else "",
            images=tuple(i for i in images if isinstance(i, str))
            if isinstance(images, list)
            else (),
            model_info=model_info if isinstance(model_info, dict) else None,
        )

    @property
    def is_say(self):
        return self.type == "say"


@dataclass
class ConversationSummary:
    task_preview: str
    model_id: str
    provider_id: str
    mode: str
    total_cost: float
    total_tokens_in: int
    total_tokens_out: int
    total_cache_reads: int
    total_cache_writes: int
    start_timestamp: int
    end_timestamp: int
    duration_ms: int
    message_count: int
    api_request_count: int

    def to_dict(self):
        return {
            "taskPreview": self.task_preview,
            "modelId": self.model_id,
            "providerId": self.provider_id,
            "mode": self.mode,
            "totalCost": self.total_cost,
            "totalTokensIn": self.total_tokens_in,
            "totalTokensOut": self.total_tokens_out,
            "totalCacheReads": self.total_cache_reads,
            "totalCacheWrites": self.total_cache_writes,
            "startTimestamp": self.start_timestamp,
            "endTimestamp": self.end_timestamp,
            "durationMs": self.duration_ms,
            "messageCount": self.message_count,
            "apiRequestCount": self.api_request_count,
        }


@dataclass
class ParsedConversation:
    messages: List[RawEvent]
    api_messages: List[Dict[str, Any]]
    metadata: Optional[Dict[str, Any]]
    summary: ConversationSummary
    source_dir: Optional[Path] = None


def parse_json_payload(text, expected=dict, default=None):
    """Parse JSON embedded in a message's text field.

    Many message subtypes carry a JSON document as their text. Anything that
    fails to parse, or parses to something other than ``expected``, yields
    ``default`` instead of raising.

    Args:
        text: The raw text, usually a JSON string.
        expected: Type (or tuple of types) the parsed value must be.
        default: Value returned when parsing fails.

    Returns:
        The parsed value or ``default``.
    """
    if not text or not isinstance(text, str):
        return default
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError, RecursionError):
        return default
    if not isinstance(parsed, expected):
        return default
    return parsed


def _number(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def _find_model_info(messages, api_messages):
    for message in messages:
        if message.model_info:
            return message.model_info
    for record in api_messages:
        if isinstance(record, dict) and isinstance(record.get("modelInfo"), dict):
            return record["modelInfo"]
    return {}


def find_end_timestamp(messages):
    """Timestamp of the last message that is not noise.

    Falls back to the final message when every message is noise.
    """
    for message in reversed(messages):
        if message.subtype not in NOISE_SUBTYPES:
            return message.ts
    return messages[-1].ts


def build_summary(messages, api_messages=None):
    """Compute session statistics from the full, ungrouped message list."""
    api_messages = api_messages or []

    task_preview = ""
    for message in messages:
        if message.is_say and message.subtype == "task":
            task_preview = message.text[:TASK_PREVIEW_LENGTH]
            break

    model_info = _find_model_info(messages, api_messages)

    def identity(key):
        value = model_info.get(key)
        return "unknown" if value is None else str(value)

    total_cost = 0
    total_tokens_in = 0
    total_tokens_out = 0
    total_cache_reads = 0
    total_cache_writes = 0
    api_request_count = 0

    for message in messages:
        if not (message.is_say and message.subtype == "api_req_started"):
            continue
        api_request_count += 1
        data = parse_json_payload(message.text, default={})
        total_cost += _number(data.get("cost"))
        total_tokens_in += _number(data.get("tokensIn"))
        total_tokens_out += _number(data.get("tokensOut"))
        total_cache_reads += _number(data.get("cacheReads"))
        total_cache_writes += _number(data.get("cacheWrites"))

    start_timestamp = messages[0].ts
    end_timestamp = find_end_timestamp(messages)

    return ConversationSummary(
        task_preview=task_preview,
        model_id=identity("modelId"),
        provider_id=identity("providerId"),
        mode=identity("mode"),
        total_cost=total_cost,
        total_tokens_in=total_tokens_in,
        total_tokens_out=total_tokens_out,
        total_cache_reads=total_cache_reads,
        total_cache_writes=total_cache_writes,
        start_timestamp=start_timestamp,
        end_timestamp=end_timestamp,
        duration_ms=end_timestamp - start_timestamp,
        message_count=len(messages),
        api_request_count=api_request_count,
    )


def _read_optional_json(path, expected):
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError, RecursionError):
        return None
    if not isinstance(data, expected):
        return None
    return data


def load_conversation(conversation_dir):
    """Read a Cline task directory.

    ``ui_messages.json`` is required; the API history and task metadata are
    optional and silently treated as absent when missing or unreadable.

    Raises:
        ConversationFormatError: if ui_messages.json cannot be read or is not
            a non-empty JSON array.
    """
    conversation_dir = Path(conversation_dir)
    ui_messages_path = conversation_dir / UI_MESSAGES_FILE

    try:
        with open(ui_messages_path, "r", encoding="utf-8") as f:
            raw_messages = json.load(f)
    except (OSError, ValueError) as e:
        raise ConversationFormatError(
            f"Failed to read {ui_messages_path}: {e}. "
            f'Make sure "{conversation_dir}" is a valid Cline conversation directory.'
        )

    if not isinstance(raw_messages, list) or not raw_messages:
        raise ConversationFormatError(
            f"{ui_messages_path} is empty or not an array."
        )

    messages = [RawEvent.from_dict(item) for item in raw_messages]
    api_messages = _read_optional_json(conversation_dir / API_HISTORY_FILE, list) or []
    metadata = _read_optional_json(conversation_dir / METADATA_FILE, dict)

    return ParsedConversation(
        messages=messages,
        api_messages=api_messages,
        metadata=metadata,
        summary=build_summary(messages, api_messages),
        source_dir=conversation_dir,
    )


def get_task_summary(conversation_dir, max_length=200):
    """Return a short description of a task directory for listings.

    Returns "(no summary)" when the directory cannot be read.
    """
    try:
        conversation = load_conversation(conversation_dir)
    except ConversationFormatError:
        return "(no summary)"
    text = conversation.summary.task_preview.strip()
    if not text:
        return "(no summary)"
    if len(text) > max_length:
        return text[: max_length - 3] + "..."
    return text

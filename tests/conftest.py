import json

import pytest

from cline_transcripts.parser import RawEvent


def say(subtype, text="", ts=1700000000000, **extra):
    """Build a RawEvent the way it would be read from ui_messages.json."""
    record = {"ts": ts, "type": "say", "say": subtype, "text": text}
    record.update(extra)
    return RawEvent.from_dict(record)


def tool(name, path=None, content=None, ts=1700000000000):
    payload = {"tool": name}
    if path is not None:
        payload["path"] = path
    if content is not None:
        payload["content"] = content
    return say("tool", json.dumps(payload), ts=ts)


HELLO_WORLD_MESSAGES = [
    {
        "ts": 1700000000000,
        "type": "say",
        "say": "task",
        "text": "Build a hello world app",
        "images": [],
    },
    {
        "ts": 1700000010000,
        "type": "say",
        "say": "api_req_started",
        "text": json.dumps({"tokensIn": 100, "tokensOut": 50, "cost": 0.01}),
    },
    {
        "ts": 1700000020000,
        "type": "say",
        "say": "text",
        "text": "I'll create a hello world app for you.",
    },
    {
        "ts": 1700000030000,
        "type": "say",
        "say": "tool",
        "text": json.dumps({"tool": "newFileCreated", "path": "hello.ts"}),
    },
    {
        "ts": 1700000040000,
        "type": "say",
        "say": "completion_result",
        "text": "Done! The app is ready.",
    },
]

HELLO_WORLD_API_HISTORY = [
    {"role": "user", "content": [{"type": "text", "text": "Build a hello world app"}]},
    {
        "role": "assistant",
        "content": [{"type": "text", "text": "Sure!"}],
        "modelInfo": {
            "modelId": "test-model",
            "providerId": "test-provider",
            "mode": "act",
        },
    },
]


@pytest.fixture
def make_conversation(tmp_path):
    """Write a Cline task directory and return its path."""

    def _make(messages, api_history=None, metadata=None, name="task"):
        task_dir = tmp_path / name
        task_dir.mkdir(parents=True, exist_ok=True)
        (task_dir / "ui_messages.json").write_text(json.dumps(messages))
        if api_history is not None:
            (task_dir / "api_conversation_history.json").write_text(
                json.dumps(api_history)
            )
        if metadata is not None:
            (task_dir / "task_metadata.json").write_text(json.dumps(metadata))
        return task_dir

    return _make


@pytest.fixture
def hello_world_dir(make_conversation):
    return make_conversation(HELLO_WORLD_MESSAGES, HELLO_WORLD_API_HISTORY)

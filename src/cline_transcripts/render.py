"""Classify Cline UI messages and render each one to an HTML block."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .config import ExportOptions
from .images import ImageExtractor
from .parser import parse_json_payload
from .paths import sanitize_path, sanitize_text
from .templating import _macros, render_markdown_text, format_cost, format_tokens

TOOL_CONTENT_PREVIEW_LENGTH = 200
GENERIC_COLLAPSE_THRESHOLD = 300
GENERIC_PREVIEW_LENGTH = 120

# Tools whose content is the body of a file written to disk
FILE_CONTENT_TOOLS = {"newFileCreated", "editedExistingFile"}

# Tool type icons for display in tool headers
TOOL_ICONS = {
    # File operations
    "readFile": "📖",
    "newFileCreated": "📝",
    "editedExistingFile": "✏️",
    "fileDeleted": "🗑",
    # Search/find operations
    "listFilesTopLevel": "📁",
    "listFilesRecursive": "📁",
    "listCodeDefinitionNames": "🏷",
    "searchFiles": "🔎",
    # Web operations
    "webFetch": "🌐",
}

# Default icon for tools not in the mapping
DEFAULT_TOOL_ICON = "🔧"


def get_tool_icon(tool_name):
    """Get the appropriate icon for a tool name."""
    return TOOL_ICONS.get(tool_name, DEFAULT_TOOL_ICON)


def split_camel_case(name):
    """Turn ``newFileCreated`` into ``new File Created``."""
    return "".join(f" {c}" if c.isupper() else c for c in name).strip()


class Category(Enum):
    TASK = "task"
    USER_FEEDBACK = "user-feedback"
    ASSISTANT_TEXT = "assistant-text"
    REASONING = "reasoning"
    TOOL_CALL = "tool-call"
    TOOL_GROUP = "tool-group"
    COMMAND = "command"
    COMMAND_OUTPUT = "command-output"
    COMPLETION_RESULT = "completion-result"
    API_REQUEST = "api-request"
    BROWSER_ACTION = "browser-action"
    BROWSER_RESULT = "browser-result"
    MCP_ACTION = "mcp-action"
    PLAN_MODE = "plan-mode"
    TASK_PROGRESS = "task-progress"
    CHECKPOINT = "checkpoint"
    RESUME = "resume"
    GENERIC = "generic"


SUBTYPE_CATEGORIES = {
    "task": Category.TASK,
    "user_feedback": Category.USER_FEEDBACK,
    "text": Category.ASSISTANT_TEXT,
    "reasoning": Category.REASONING,
    "tool": Category.TOOL_CALL,
    "command": Category.COMMAND,
    "command_output": Category.COMMAND_OUTPUT,
    "completion_result": Category.COMPLETION_RESULT,
    "api_req_started": Category.API_REQUEST,
    "browser_action": Category.BROWSER_ACTION,
    "browser_action_launch": Category.BROWSER_ACTION,
    "browser_action_result": Category.BROWSER_RESULT,
    "mcp_server_request_started": Category.MCP_ACTION,
    "use_mcp_server": Category.MCP_ACTION,
    "plan_mode_respond": Category.PLAN_MODE,
    "task_progress": Category.TASK_PROGRESS,
    "checkpoint_created": Category.CHECKPOINT,
    "resume_task": Category.RESUME,
    "resume_completed_task": Category.RESUME,
}

# Toolbar filters and the client-side default visibility for each
FILTERS = [
    ("thinking", "Thinking", True),
    ("browser", "Browser", True),
    ("tools", "Tools", True),
    ("mcp", "MCP", True),
    ("commands", "Commands", False),
    ("progress", "Progress", False),
    ("api", "API Stats", False),
]


def classify(event):
    """Map a message to its category; unknown subtypes are GENERIC."""
    return SUBTYPE_CATEGORIES.get(event.subtype, Category.GENERIC)


@dataclass
class RenderContext:
    """Per-run state shared by every render call."""

    options: ExportOptions = field(default_factory=ExportOptions)
    images: ImageExtractor = field(default_factory=ImageExtractor)


@dataclass
class RenderUnit:
    """One block of the final page, from a single message or a tool group."""

    category: Category
    indices: Tuple[int, ...]
    html: str
    images: List[str] = field(default_factory=list)
    # Only set for tool groups
    tool_name: Optional[str] = None
    paths: List[str] = field(default_factory=list)
    members: List["RenderUnit"] = field(default_factory=list)

    @property
    def is_empty(self):
        return not self.html.strip()


def _html(markup):
    return str(markup).strip()


def _images_html(srcs):
    return _html(_macros.images(srcs))


def render_user_message(event, context):
    css_class = "user-task" if classify(event) is Category.TASK else "user-feedback"
    srcs = context.images.process_images(event.images)
    return _html(
        _macros.user_message(
            css_class,
            event.ts,
            render_markdown_text(event.text),
            _images_html(srcs),
        )
    )


def render_assistant_text(event, context):
    if not event.is_say:
        return ""
    return _html(_macros.assistant_text(event.ts, render_markdown_text(event.text)))


def render_reasoning(event, context):
    if not event.text:
        return ""
    return _html(_macros.reasoning(event.ts, render_markdown_text(event.text)))


def render_tool_call(event, context):
    options = context.options
    data = parse_json_payload(event.text)
    if data is None:
        return _html(_macros.tool_call_raw(event.ts, DEFAULT_TOOL_ICON, event.text))

    tool_name = data.get("tool")
    if not isinstance(tool_name, str) or not tool_name:
        tool_name = "unknown"
    path = data.get("path")
    display_path = sanitize_path(path, options) if isinstance(path, str) else ""

    content = data.get("content")
    if not isinstance(content, str):
        content = ""
    if options.hide_file_contents and tool_name in FILE_CONTENT_TOOLS:
        content = ""

    preview = ""
    if content:
        if len(content) > TOOL_CONTENT_PREVIEW_LENGTH:
            preview = content[:TOOL_CONTENT_PREVIEW_LENGTH] + "…"
        else:
            preview = content
        preview = sanitize_text(preview, options)
        content = sanitize_text(content, options)

    return _html(
        _macros.tool_call(
            event.ts,
            get_tool_icon(tool_name),
            split_camel_case(tool_name),
            display_path,
            preview,
            content,
        )
    )


def render_command(event, context):
    if context.options.suppress_commands:
        return ""
    return _html(_macros.command(event.ts, event.text))


def render_command_output(event, context):
    if context.options.suppress_commands or not event.text:
        return ""
    return _html(_macros.command_output(event.ts, event.text))


def render_completion(event, context):
    return _html(_macros.completion(event.ts, render_markdown_text(event.text)))


def _positive(value):
    return not isinstance(value, bool) and isinstance(value, (int, float)) and value > 0


def render_api_request(event, context):
    data = parse_json_payload(event.text)
    if data is None:
        return ""
    stats = []
    if _positive(data.get("cost")) or _positive(data.get("tokensIn")) or _positive(
        data.get("tokensOut")
    ):
        if _positive(data.get("tokensIn")):
            stats.append(f"↓ {format_tokens(data['tokensIn'])}")
        if _positive(data.get("tokensOut")):
            stats.append(f"↑ {format_tokens(data['tokensOut'])}")
        if _positive(data.get("cacheReads")):
            stats.append(f"cache: {format_tokens(data['cacheReads'])}")
        if _positive(data.get("cost")):
            stats.append(format_cost(data["cost"]))
    cancel_reason = data.get("cancelReason")
    if not isinstance(cancel_reason, str):
        cancel_reason = ""
    return _html(_macros.api_request(event.ts, stats, cancel_reason))


def render_browser_action(event, context):
    srcs = context.images.process_images(event.images)
    return _html(
        _macros.browser_action(
            event.ts, render_markdown_text(event.text), _images_html(srcs)
        )
    )


def render_browser_result(event, context):
    screenshot_src = ""
    logs = ""
    current_url = ""
    body = ""
    data = parse_json_payload(event.text)
    if data is None:
        body = event.text
    else:
        screenshot = data.get("screenshot")
        if isinstance(screenshot, str) and screenshot:
            screenshot_src = context.images.extract_data_uri(screenshot) or screenshot
        if isinstance(data.get("logs"), str):
            logs = data["logs"]
        if isinstance(data.get("currentUrl"), str):
            current_url = data["currentUrl"]

    srcs = context.images.process_images(event.images)
    if screenshot_src:
        srcs = [screenshot_src] + srcs
    return _html(
        _macros.browser_result(event.ts, current_url, body, _images_html(srcs), logs)
    )


def render_mcp_action(event, context):
    data = parse_json_payload(event.text)
    if data is None:
        return _html(_macros.mcp_raw(event.ts, render_markdown_text(event.text)))
    tool_name = data.get("toolName") or "unknown"
    server_name = data.get("serverName") or ""
    arguments = data.get("arguments")
    arguments_json = (
        json.dumps(arguments, indent=2, ensure_ascii=False) if arguments else ""
    )
    return _html(
        _macros.mcp_action(event.ts, str(tool_name), str(server_name), arguments_json)
    )


def render_plan_mode(event, context):
    content = event.text
    data = parse_json_payload(event.text)
    if data is not None and isinstance(data.get("response"), str) and data["response"]:
        content = data["response"]
    return _html(_macros.plan_mode(event.ts, render_markdown_text(content)))


def render_task_progress(event, context):
    if not event.text:
        return ""
    return _html(_macros.task_progress(event.ts, render_markdown_text(event.text)))


def render_checkpoint(event, context):
    return _html(_macros.checkpoint(event.ts))


def render_resume(event, context):
    return _html(_macros.resume(event.ts))


def render_generic(event, context):
    """Fallback for unknown subtypes. Never raises."""
    if not event.text and not event.images:
        return ""
    cleaned, inline_paths = context.images.extract_inline(event.text)
    srcs = inline_paths + context.images.process_images(event.images)

    preview = ""
    if len(cleaned) > GENERIC_COLLAPSE_THRESHOLD:
        preview = cleaned[:GENERIC_PREVIEW_LENGTH] + "…"
    return _html(_macros.generic(event.ts, preview, cleaned, _images_html(srcs)))


RENDERERS = {
    Category.TASK: render_user_message,
    Category.USER_FEEDBACK: render_user_message,
    Category.ASSISTANT_TEXT: render_assistant_text,
    Category.REASONING: render_reasoning,
    Category.TOOL_CALL: render_tool_call,
    Category.COMMAND: render_command,
    Category.COMMAND_OUTPUT: render_command_output,
    Category.COMPLETION_RESULT: render_completion,
    Category.API_REQUEST: render_api_request,
    Category.BROWSER_ACTION: render_browser_action,
    Category.BROWSER_RESULT: render_browser_result,
    Category.MCP_ACTION: render_mcp_action,
    Category.PLAN_MODE: render_plan_mode,
    Category.TASK_PROGRESS: render_task_progress,
    Category.CHECKPOINT: render_checkpoint,
    Category.RESUME: render_resume,
    Category.GENERIC: render_generic,
}


def render_event(event, index, context):
    """Render a single message into a RenderUnit.

    Images extracted while rendering are recorded on the unit. An empty
    ``html`` means the message produces nothing on the page.
    """
    category = classify(event)
    renderer = RENDERERS.get(category, render_generic)
    already_queued = len(context.images.pending)
    body = renderer(event, context)
    extracted = [path for path, _ in context.images.pending[already_queued:]]
    return RenderUnit(
        category=category, indices=(index,), html=body, images=extracted
    )


def render_events(events, context):
    """Render messages in order; image numbering follows message order."""
    return [render_event(event, i, context) for i, event in enumerate(events)]

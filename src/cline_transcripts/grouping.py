"""Fold runs of repeated tool calls into collapsible groups.

Assistants often read or edit a dozen files in a row. Rendering each call on
its own buries the conversation, so consecutive tool calls with the same tool
name are collapsed into one group block. Progress pings, checkpoints and API
request markers between the calls do not interrupt a run.
"""

from .parser import parse_json_payload
from .paths import sanitize_path
from .render import Category, RenderUnit, _html, get_tool_icon, split_camel_case
from .templating import _macros

MIN_GROUP_SIZE = 3
MAX_PREVIEW_PATHS = 8

# Subtypes absorbed into a run without counting towards it
TRANSPARENT_SUBTYPES = {"task_progress", "checkpoint_created", "api_req_started"}

TOOL_GROUP_LABELS = {
    "readFile": "Read files",
    "newFileCreated": "Created files",
    "editedExistingFile": "Edited files",
    "fileDeleted": "Deleted files",
    "listFilesTopLevel": "Listed directories",
    "listFilesRecursive": "Listed directories",
    "listCodeDefinitionNames": "Listed code definitions",
    "searchFiles": "Searched files",
    "webFetch": "Fetched pages",
}


def parse_tool_call(event):
    """Return the tool payload of a tool message, or None.

    Only messages whose payload parses to an object with a non-empty string
    ``tool`` field count as tool calls for grouping.
    """
    if event.subtype != "tool":
        return None
    data = parse_json_payload(event.text)
    if data is None:
        return None
    tool_name = data.get("tool")
    if not isinstance(tool_name, str) or not tool_name:
        return None
    return data


def group_label(tool_name):
    return TOOL_GROUP_LABELS.get(tool_name, split_camel_case(tool_name))


def format_paths_preview(paths, options=None):
    """Comma-joined, sanitized path list capped at MAX_PREVIEW_PATHS."""
    if not paths:
        return ""
    shown = [sanitize_path(path, options) for path in paths[:MAX_PREVIEW_PATHS]]
    preview = ", ".join(shown)
    hidden = len(paths) - MAX_PREVIEW_PATHS
    if hidden > 0:
        preview += f" +{hidden} more"
    return preview


def build_group_unit(events, units, member_indices, tool_indices, tool_name, paths, options):
    members = [units[i] for i in tool_indices if not units[i].is_empty]
    members_html = "\n".join(unit.html for unit in members)
    images = []
    for i in member_indices:
        images.extend(units[i].images)
    html = _html(
        _macros.tool_group(
            events[member_indices[0]].ts,
            get_tool_icon(tool_name),
            group_label(tool_name),
            len(tool_indices),
            format_paths_preview(paths, options),
            members_html,
        )
    )
    return RenderUnit(
        category=Category.TOOL_GROUP,
        indices=tuple(member_indices),
        html=html,
        images=images,
        tool_name=tool_name,
        paths=paths,
        members=members,
    )


def group_tool_runs(events, units, options=None):
    """Collapse runs of same-named tool calls.

    Single greedy forward scan. When a run has fewer than MIN_GROUP_SIZE tool
    calls only its first message is emitted and scanning resumes at the next
    position, so a valid run starting one message later can still be found.

    Args:
        events: The ordered RawEvent list.
        units: RenderUnits parallel to ``events``.
        options: ExportOptions used to sanitize the path preview.

    Returns:
        A new list of RenderUnits; grouped messages are replaced by one unit.
    """
    grouped = []
    i = 0
    count = len(events)
    while i < count:
        first = parse_tool_call(events[i])
        if first is None:
            grouped.append(units[i])
            i += 1
            continue

        tool_name = first["tool"]
        member_indices = [i]
        tool_indices = [i]
        j = i + 1
        while j < count:
            data = parse_tool_call(events[j])
            if data is not None and data["tool"] == tool_name:
                member_indices.append(j)
                tool_indices.append(j)
            elif events[j].subtype in TRANSPARENT_SUBTYPES:
                member_indices.append(j)
            else:
                break
            j += 1

        if len(tool_indices) < MIN_GROUP_SIZE:
            grouped.append(units[i])
            i += 1
            continue

        paths = []
        for k in tool_indices:
            path = parse_tool_call(events[k]).get("path")
            if isinstance(path, str) and path:
                paths.append(path)
        grouped.append(
            build_group_unit(
                events, units, member_indices, tool_indices, tool_name, paths, options
            )
        )
        i = j
    return grouped

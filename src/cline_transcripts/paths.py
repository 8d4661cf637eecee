"""Derive a project root from a conversation and strip it from paths."""

from .parser import parse_json_payload


def collect_absolute_paths(messages, metadata=None):
    """Collect every absolute path mentioned by the conversation.

    Looks at ``files_in_context`` in the task metadata and at the ``path``
    field of tool messages. Tool payloads that fail to parse are skipped.
    """
    paths = []
    if isinstance(metadata, dict):
        files = metadata.get("files_in_context") or []
        if isinstance(files, list):
            for record in files:
                if not isinstance(record, dict):
                    continue
                path = record.get("path")
                if isinstance(path, str) and path.startswith("/"):
                    paths.append(path)
    for message in messages:
        if message.subtype != "tool":
            continue
        data = parse_json_payload(message.text)
        if data is None:
            continue
        path = data.get("path")
        if isinstance(path, str) and path.startswith("/"):
            paths.append(path)
    return paths


def derive_project_root(paths):
    """Return the longest slash-delimited prefix shared by all paths.

    Returns None when there are no paths or they share no leading segment.
    """
    if not paths:
        return None
    split_paths = [[part for part in path.split("/") if part] for path in paths]
    common = split_paths[0]
    for parts in split_paths[1:]:
        length = 0
        for a, b in zip(common, parts):
            if a != b:
                break
            length += 1
        common = common[:length]
        if not common:
            return None
    if not common:
        return None
    return "/" + "/".join(common)


def _active_root(options):
    if options is None or not options.strip_absolute_paths:
        return None
    return options.project_root or None


def sanitize_path(path, options):
    """Rewrite a single path relative to the project root."""
    root = _active_root(options)
    if not root or not path:
        return path
    if path == root:
        return "."
    if path.startswith(root + "/"):
        return path[len(root) + 1 :]
    return path


def sanitize_text(text, options):
    """Remove the project root from free text.

    Cruder than sanitize_path: ``root/`` is deleted outright and any remaining
    bare ``root`` becomes ``.``.
    """
    root = _active_root(options)
    if not root or not text:
        return text
    return text.replace(root + "/", "").replace(root, ".")

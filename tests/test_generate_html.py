"""Tests for exporting a conversation directory to HTML."""

import json

import pytest
from click.testing import CliRunner

from cline_transcripts import (
    cli,
    find_local_tasks,
    generate_html,
    render_page,
)
from cline_transcripts.config import ExportOptions
from cline_transcripts.parser import ConversationFormatError, load_conversation
from cline_transcripts.render import RenderContext, render_events

PNG_URI = "data:image/png;base64,aGVsbG8="


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "out"


class TestGenerateHtml:
    """Tests for the main generate_html function."""

    def test_hello_world(self, hello_world_dir, output_dir):
        conversation = generate_html(hello_world_dir, output_dir)
        summary = conversation.summary
        assert summary.message_count == 5
        assert summary.api_request_count == 1
        assert summary.total_cost == pytest.approx(0.01)
        assert summary.task_preview == "Build a hello world app"

        page = (output_dir / "index.html").read_text()
        assert "✅ Task Complete" in page
        assert page.count('class="message tool-call"') == 1
        assert "tool-group" not in page
        assert "new File Created" in page
        assert "<p>Build a hello world app</p>" in page

    def test_static_assets_copied(self, hello_world_dir, output_dir):
        generate_html(hello_world_dir, output_dir)
        assert (output_dir / "style.css").exists()
        assert (output_dir / "script.js").exists()
        assert "hide-commands" in (output_dir / "style.css").read_text()

    def test_summary_header(self, hello_world_dir, output_dir):
        generate_html(hello_world_dir, output_dir)
        page = (output_dir / "index.html").read_text()
        assert "test-model" in page
        assert "test-provider" in page
        assert "$0.01" in page
        assert "40s" in page
        assert '<span class="label">API Requests</span><span class="value">1</span>' in page

    def test_default_hidden_filters(self, hello_world_dir, output_dir):
        generate_html(hello_world_dir, output_dir)
        page = (output_dir / "index.html").read_text()
        assert '<body class="hide-commands hide-progress hide-api">' in page
        assert 'data-filter="thinking"' in page

    def test_images_written(self, make_conversation, output_dir):
        task_dir = make_conversation(
            [
                {"ts": 1, "type": "say", "say": "task", "text": "see", "images": [PNG_URI]},
                {
                    "ts": 2,
                    "type": "say",
                    "say": "browser_action_result",
                    "text": json.dumps({"screenshot": "data:image/webp;base64,aGVsbG8="}),
                },
            ]
        )
        generate_html(task_dir, output_dir)
        assert (output_dir / "images" / "001.png").read_bytes() == b"hello"
        assert (output_dir / "images" / "002.webp").exists()
        page = (output_dir / "index.html").read_text()
        assert 'src="images/001.png"' in page

    def test_repeated_runs_restart_image_numbering(self, make_conversation, tmp_path):
        task_dir = make_conversation(
            [{"ts": 1, "type": "say", "say": "task", "text": "x", "images": [PNG_URI]}]
        )
        generate_html(task_dir, tmp_path / "one")
        generate_html(task_dir, tmp_path / "two")
        assert (tmp_path / "two" / "images" / "001.png").exists()

    def test_tool_runs_are_grouped(self, make_conversation, output_dir):
        messages = [{"ts": 1, "type": "say", "say": "task", "text": "read"}]
        for i in range(4):
            messages.append(
                {
                    "ts": 2 + i,
                    "type": "say",
                    "say": "tool",
                    "text": json.dumps({"tool": "readFile", "path": f"src/f{i}.py"}),
                }
            )
        generate_html(make_conversation(messages), output_dir)
        page = (output_dir / "index.html").read_text()
        assert page.count("tool-group-details") == 1
        assert "×4" in page

    def test_strip_absolute_paths(self, make_conversation, output_dir):
        root = "/home/dev/projects/app"
        messages = [
            {"ts": 1, "type": "say", "say": "task", "text": "go"},
            {
                "ts": 2,
                "type": "say",
                "say": "tool",
                "text": json.dumps(
                    {"tool": "readFile", "path": f"{root}/src/main.py", "content": f"{root}/x"}
                ),
            },
        ]
        metadata = {"files_in_context": [{"path": f"{root}/README.md"}]}
        task_dir = make_conversation(messages, metadata=metadata)
        options = ExportOptions(strip_absolute_paths=True)
        generate_html(task_dir, output_dir, options)
        assert options.project_root == root
        page = (output_dir / "index.html").read_text()
        assert root not in page
        assert "src/main.py" in page

    def test_failure_writes_nothing(self, tmp_path, output_dir):
        with pytest.raises(ConversationFormatError):
            generate_html(tmp_path / "missing", output_dir)
        assert not output_dir.exists()


class TestRenderPage:
    def test_empty_units_are_filtered(self, make_conversation):
        task_dir = make_conversation(
            [
                {"ts": 1, "type": "say", "say": "task", "text": "t"},
                {"ts": 2, "type": "say", "say": "reasoning", "text": ""},
            ]
        )
        conversation = load_conversation(task_dir)
        units = render_events(conversation.messages, RenderContext())
        page = render_page(conversation, units)
        assert 'class="message reasoning"' not in page
        assert 'class="message user-task"' in page


class TestFindLocalTasks:
    def test_finds_tasks_with_task_text(self, make_conversation, tmp_path):
        make_conversation(
            [{"ts": 1, "type": "say", "say": "task", "text": "First"}], name="tasks/111"
        )
        make_conversation(
            [{"ts": 1, "type": "say", "say": "text", "text": "no task"}], name="tasks/222"
        )
        results = find_local_tasks(tmp_path / "tasks")
        assert [(path.name, summary) for path, summary in results] == [("111", "First")]

    def test_missing_folder(self, tmp_path):
        assert find_local_tasks(tmp_path / "nope") == []


class TestCli:
    def test_export_is_default_command(self, hello_world_dir, output_dir):
        runner = CliRunner()
        result = runner.invoke(cli, [str(hello_world_dir), "-o", str(output_dir)])
        assert result.exit_code == 0, result.output
        assert (output_dir / "index.html").exists()
        assert "Output:" in result.output

    def test_export_flags(self, make_conversation, output_dir):
        task_dir = make_conversation(
            [
                {"ts": 1, "type": "say", "say": "task", "text": "t"},
                {"ts": 2, "type": "say", "say": "command", "text": "rm -rf build"},
                {
                    "ts": 3,
                    "type": "say",
                    "say": "tool",
                    "text": json.dumps(
                        {"tool": "newFileCreated", "path": "a.py", "content": "SECRET"}
                    ),
                },
            ]
        )
        runner = CliRunner()
        result = runner.invoke(
            cli,
            [
                "export",
                str(task_dir),
                "-o",
                str(output_dir),
                "--no-commands",
                "--no-file-contents",
                "--no-full-paths",
            ],
        )
        assert result.exit_code == 0, result.output
        page = (output_dir / "index.html").read_text()
        assert "rm -rf build" not in page
        assert "SECRET" not in page

    def test_export_uses_configured_output(self, hello_world_dir, tmp_path, monkeypatch):
        monkeypatch.setenv("CLINE_TRANSCRIPTS_OUTPUT", str(tmp_path / "from-env"))
        runner = CliRunner()
        result = runner.invoke(cli, ["export", str(hello_world_dir)])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "from-env" / "index.html").exists()

    def test_missing_directory_fails(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["export", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "ui_messages.json" in result.output

    def test_summary_json(self, hello_world_dir):
        runner = CliRunner()
        result = runner.invoke(cli, ["summary", str(hello_world_dir), "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["messageCount"] == 5
        assert data["apiRequestCount"] == 1
        assert data["modelId"] == "test-model"
        assert data["durationMs"] == 40000

    def test_summary_text(self, hello_world_dir):
        runner = CliRunner()
        result = runner.invoke(cli, ["summary", str(hello_world_dir)])
        assert result.exit_code == 0, result.output
        assert "Build a hello world app" in result.output
        assert "$0.01" in result.output
        assert "100 in, 50 out" in result.output

    def test_local_selects_task(self, make_conversation, tmp_path, monkeypatch):
        import questionary

        make_conversation(
            [{"ts": 1, "type": "say", "say": "task", "text": "Local task"}],
            name="tasks/123",
        )
        monkeypatch.setenv("CLINE_TASKS_DIR", str(tmp_path / "tasks"))

        class MockSelect:
            def __init__(self, *args, **kwargs):
                self.choices = kwargs["choices"]

            def ask(self):
                return self.choices[0].value

        monkeypatch.setattr(questionary, "select", MockSelect)

        output_dir = tmp_path / "local-out"
        runner = CliRunner()
        result = runner.invoke(cli, ["local", "-o", str(output_dir)])
        assert result.exit_code == 0, result.output
        assert "Local task" in (output_dir / "index.html").read_text()

    def test_local_without_tasks_folder(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CLINE_TASKS_DIR", str(tmp_path / "nothing"))
        runner = CliRunner()
        result = runner.invoke(cli, ["local"])
        assert result.exit_code == 0
        assert "Tasks folder not found" in result.output

"""Tests for the command line interface."""

import json

import pytest

from storyreel.cli.main import build_parser, main
from storyreel.workflow.store import ProjectRepository


@pytest.fixture
def cli(tmp_path, monkeypatch):
    """Run the CLI offline against a temporary projects directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("MINIMAX_API_KEY", raising=False)
    projects_dir = tmp_path / "projects"

    def run(*argv: str) -> int:
        return main(["--projects-dir", str(projects_dir), "--mock", *argv])

    run.repository = ProjectRepository(projects_dir)
    return run


class TestParser:
    """Tests for argument parsing."""

    def test_create_defaults(self):
        """Test create defaults to English and 30 seconds."""
        args = build_parser().parse_args(["create", "Storms"])

        assert args.language == "en"
        assert args.duration == 30
        assert args.premium is False

    def test_rejects_unsupported_duration(self):
        """Test argparse refuses durations outside 30/60/90."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["create", "Storms", "-d", "45"])

    def test_render_is_not_a_stage(self):
        """Test video is not offered as a generate stage."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["generate", "p1", "video"])

    def test_no_command_prints_help(self, capsys):
        """Test running without a command shows usage."""
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out


class TestCommands:
    """Tests for the subcommands."""

    def test_create_and_list(self, cli, capsys):
        """Test a created project is persisted and listed."""
        assert cli("create", "The last lighthouse keeper", "-l", "fr", "-d", "60") == 0

        projects = cli.repository.list_projects()
        assert len(projects) == 1
        assert projects[0].language == "fr"
        assert projects[0].duration == 60

        assert cli("list") == 0
        assert "1 project(s)" in capsys.readouterr().out

    def test_generate_analysis_and_status(self, cli, capsys):
        """Test generating analysis and reading status as JSON."""
        cli("create", "Storms over the harbor")
        project_id = cli.repository.list_projects()[0].id

        assert cli("generate", project_id, "analysis") == 0
        assert cli.repository.load(project_id).status.value == "analyzed"

        capsys.readouterr()
        assert cli("status", project_id, "--json") == 0
        out = capsys.readouterr().out
        state = json.loads(out[out.index("{\n"):])
        assert state["project"]["status"] == "analyzed"
        assert state["artifacts"]["analysis"]["version"] == 1

    def test_reject_with_notes(self, cli):
        """Test rejecting a script stores the notes and steps back."""
        cli("create", "Storms over the harbor")
        project_id = cli.repository.list_projects()[0].id
        cli("generate", project_id, "analysis")
        cli("generate", project_id, "script")

        assert cli("approve", project_id, "script", "--reject", "-n", "shorter sentences") == 0

        project = cli.repository.load(project_id)
        assert project.status.value == "analyzed"
        assert project.revision_notes == {"script": "shorter sentences"}

    def test_workflow_error_exit_code(self, cli, capsys):
        """Test workflow errors print a message and exit 1."""
        cli("create", "Storms over the harbor")
        project_id = cli.repository.list_projects()[0].id

        assert cli("generate", project_id, "script") == 1
        assert "INVALID_STATUS" in capsys.readouterr().out

    def test_missing_project(self, cli, capsys):
        """Test an unknown project id is reported."""
        assert cli("status", "nope") == 1
        assert "NOT_FOUND" in capsys.readouterr().out

    @pytest.mark.parametrize("content", [None, "{not json", '{"order": 1}'])
    def test_bad_revisions_file(self, cli, tmp_path, capsys, content):
        """Test a missing, malformed or non-list revisions file exits 1 as a validation error."""
        cli("create", "Storms over the harbor")
        project_id = cli.repository.list_projects()[0].id
        cli("generate", project_id, "analysis")
        cli("generate", project_id, "script")
        capsys.readouterr()
        path = tmp_path / "revisions.json"
        if content is not None:
            path.write_text(content)

        assert cli("approve", project_id, "script", "--revisions", str(path)) == 1

        assert "VALIDATION_ERROR" in capsys.readouterr().out
        assert cli.repository.load(project_id).status.value == "script_review"

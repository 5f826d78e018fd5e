"""Main CLI entry point for the StoryReel workflow.

Usage:
    python -m storyreel.cli list                                   # List all projects
    python -m storyreel.cli create "<topic>" -l en -d 30           # Create new project
    python -m storyreel.cli status <project>                       # Show project status
    python -m storyreel.cli generate <project> analysis            # Generate a stage
    python -m storyreel.cli approve <project> script               # Approve a stage
    python -m storyreel.cli approve <project> script --reject -n "shorter"
    python -m storyreel.cli render <project>                       # Render final video
    python -m storyreel.cli serve                                  # Start the HTTP API

Workflow:
    1. create     - Create a project (status: draft)
    2. generate   - analysis, then script
    3. approve    - script, then generate + approve storyboard, then assets
    4. render     - Render the final video (requires assets_approved)
"""

import argparse
import asyncio
import json
import sys

from rich.console import Console
from rich.table import Table

from ..config import load_config
from ..errors import StoryReelError, ValidationError
from ..models import SUPPORTED_DURATIONS, SUPPORTED_LANGUAGES
from ..workflow import Workflow, build_workflow
from ..workflow.status import APPROVABLE_STAGES, GENERATABLE_STAGES


console = Console()


def _workflow(args: argparse.Namespace) -> Workflow:
    config = load_config(args.config)
    if args.projects_dir:
        config.paths.projects_dir = args.projects_dir
    return build_workflow(config, mock=args.mock)


def _print_error(error: StoryReelError) -> None:
    console.print(f"[red]Error ({error.code}):[/red] {error.message}")
    for detail in error.details:
        console.print(f"  [dim]- {detail}[/dim]")


def cmd_list(args: argparse.Namespace) -> int:
    """List all projects."""
    projects = _workflow(args).list_projects()
    if not projects:
        console.print("No projects found.")
        return 0

    table = Table(title=f"{len(projects)} project(s)")
    table.add_column("ID")
    table.add_column("Topic")
    table.add_column("Lang")
    table.add_column("Duration", justify="right")
    table.add_column("Status")
    for project in projects:
        table.add_row(
            project.id,
            project.topic[:50],
            project.language,
            f"{project.duration}s",
            project.status.value,
        )
    console.print(table)
    return 0


def cmd_create(args: argparse.Namespace) -> int:
    """Create a new project."""
    project = _workflow(args).create_project(
        args.topic, args.language, args.duration, is_premium=args.premium
    )
    console.print(f"[green]Created project[/green] {project.id} (status: {project.status.value})")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show project status and current artifacts."""
    state = _workflow(args).describe(args.project)
    project = state["project"]

    console.print(f"[bold]Project:[/bold] {project['id']}")
    console.print(f"Topic: {project['topic']}")
    console.print(f"Language: {project['language']}  Duration: {project['duration']}s")
    console.print(f"Status: [cyan]{project['status']}[/cyan]")
    if project["revision_notes"]:
        console.print(f"Revision notes: {project['revision_notes']}")

    table = Table(title="Artifacts")
    table.add_column("Stage")
    table.add_column("Version", justify="right")
    table.add_column("Status")
    table.add_column("Created by")
    for stage, version in state["artifacts"].items():
        if version is None:
            table.add_row(stage, "-", "[dim]none[/dim]", "-")
        else:
            table.add_row(stage, str(version["version"]), version["status"], version["created_by"])
    console.print(table)

    if args.json:
        print(json.dumps(state, indent=2))
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    """Generate (or regenerate) a stage."""
    project = asyncio.run(_workflow(args).generate(args.project, args.stage))
    console.print(f"[green]✓[/green] {args.stage} generated (status: {project.status.value})")
    return 0


def _load_revisions(path: str | None) -> list[dict] | None:
    if not path:
        return None
    try:
        with open(path) as f:
            data = json.load(f)
    except OSError as e:
        raise ValidationError(f"Cannot read revisions file {path}: {e.strerror or e}")
    except json.JSONDecodeError as e:
        raise ValidationError(f"Revisions file is not valid JSON: {path} ({e})")
    if not isinstance(data, list):
        raise ValidationError(f"Revisions file must contain a JSON list: {path}")
    return data


def cmd_approve(args: argparse.Namespace) -> int:
    """Approve or reject a reviewed stage."""
    project = _workflow(args).approve(
        args.project,
        args.stage,
        approved=not args.reject,
        revisions=_load_revisions(args.revisions),
        notes=args.notes,
    )
    verdict = "rejected" if args.reject else "approved"
    console.print(f"[green]✓[/green] {args.stage} {verdict} (status: {project.status.value})")
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    """Render the final video."""
    video = asyncio.run(_workflow(args).render(args.project))
    console.print(f"[green]✓ Video ready:[/green] {video.url}")
    console.print(f"  Duration: {video.duration:g}s  Size: {video.file_size / 1024 / 1024:.2f}MB")
    console.print(f"  Subtitles: {video.subtitles_url}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the HTTP API."""
    import uvicorn
    from ..web.dependencies import get_config

    web = get_config()
    web.config_path = args.config
    web.projects_dir = args.projects_dir
    web.mock = args.mock

    console.print(f"Starting StoryReel API on http://{args.host}:{args.port}")
    uvicorn.run("storyreel.web.app:create_app", host=args.host, port=args.port, factory=True)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storyreel",
        description="StoryReel workflow CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--projects-dir", help="Override the projects directory")
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use offline generators (no provider API calls)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # list command
    list_parser = subparsers.add_parser("list", help="List all projects")
    list_parser.set_defaults(func=cmd_list)

    # create command
    create_parser = subparsers.add_parser("create", help="Create a new project")
    create_parser.add_argument("topic", help="Topic of the video")
    create_parser.add_argument("--language", "-l", choices=SUPPORTED_LANGUAGES, default="en")
    create_parser.add_argument(
        "--duration", "-d", type=int, choices=SUPPORTED_DURATIONS, default=30,
        help="Target duration in seconds (default: 30)",
    )
    create_parser.add_argument("--premium", action="store_true", help="Mark as premium")
    create_parser.set_defaults(func=cmd_create)

    # status command
    status_parser = subparsers.add_parser("status", help="Show project status")
    status_parser.add_argument("project", help="Project ID")
    status_parser.add_argument("--json", action="store_true", help="Also print raw JSON")
    status_parser.set_defaults(func=cmd_status)

    # generate command
    generate_parser = subparsers.add_parser("generate", help="Generate a stage")
    generate_parser.add_argument("project", help="Project ID")
    generate_parser.add_argument("stage", choices=[s.value for s in GENERATABLE_STAGES])
    generate_parser.set_defaults(func=cmd_generate)

    # approve command
    approve_parser = subparsers.add_parser("approve", help="Approve or reject a stage")
    approve_parser.add_argument("project", help="Project ID")
    approve_parser.add_argument("stage", choices=[s.value for s in APPROVABLE_STAGES])
    approve_parser.add_argument("--reject", action="store_true", help="Reject instead of approve")
    approve_parser.add_argument("--notes", "-n", help="Revision notes for the next generation")
    approve_parser.add_argument("--revisions", help="JSON file with a list of scene revisions")
    approve_parser.set_defaults(func=cmd_approve)

    # render command
    render_parser = subparsers.add_parser("render", help="Render the final video")
    render_parser.add_argument("project", help="Project ID")
    render_parser.set_defaults(func=cmd_render)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except StoryReelError as e:
        _print_error(e)
        return 1


if __name__ == "__main__":
    sys.exit(main())

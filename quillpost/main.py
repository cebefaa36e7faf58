"""
Quillpost — CLI Entry Point

Usage:
    quillpost save post.json [--post-id ID] [--dry-run]
    quillpost reading-time post.json
    quillpost slug "My Cool Post!!"
    quillpost serve [--port 5050]
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from dotenv import load_dotenv

load_dotenv()

import json
from pathlib import Path
from typing import Any, Optional

import click

from .async_utils import run_async
from .config import load_config
from .content.reading_time import estimate_reading_time
from .errors import QuillpostError
from .logging_config import setup_logging
from .models.post import PostDraft
from .publishing.slug import generate_slug
from .services import build_services

# Initialize logging
setup_logging()


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"{path} is not valid JSON: {e}", param_hint="FILE") from e


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Quillpost — rich-text blog posts with deferred image uploads."""
    ctx.ensure_object(dict)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--post-id", default=None, help="Update this post instead of creating one")
@click.option("--dry-run", is_flag=True, help="Run the pipeline against in-memory storage")
def save(file: Path, post_id: Optional[str], dry_run: bool) -> None:
    """Save a post draft (JSON) through the full publish pipeline."""
    data = _read_json(file)
    if not isinstance(data, dict):
        raise click.BadParameter("expected a JSON object", param_hint="FILE")

    services = build_services(load_config(), in_memory=dry_run)

    try:
        draft = PostDraft.from_payload(data)
        outcome = run_async(services.posts.save_outcome(draft, post_id=None if dry_run else post_id))
    except QuillpostError as e:
        click.secho(f"✗ {type(e).__name__}: {e}", fg="red", err=True)
        raise SystemExit(1)

    post = outcome.post
    click.echo(f"  Post ID:      {post.id}")
    click.echo(f"  Slug:         {post.slug}")
    click.echo(f"  Status:       {post.status}")
    click.echo(f"  Reading time: {post.reading_time} min")
    click.echo(f"  Images:       {outcome.commit.uploaded_count} uploaded")

    for failure in outcome.failures:
        click.secho(f"  ⚠ {failure.message} (left staged)", fg="yellow")

    if dry_run:
        click.secho("\n(Dry run: nothing persisted)", fg="cyan")
    else:
        click.secho("✓ Post saved", fg="green")


@cli.command("reading-time")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def reading_time(file: Path) -> None:
    """Estimate reading time for a content tree (or a post with ``content``)."""
    try:
        data = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict) and "content" in data and "type" not in data:
        data = data["content"]
    click.echo(f"{estimate_reading_time(data)} min read")


@cli.command()
@click.argument("title")
def slug(title: str) -> None:
    """Derive the URL slug for TITLE."""
    click.echo(generate_slug(title))


@cli.command()
@click.option("--host", default="127.0.0.1", help="Interface to bind (keep it local)")
@click.option("--port", default=5050, type=int, help="Port to listen on")
@click.option("--debug", is_flag=True, help="Enable Flask debug mode")
def serve(host: str, port: int, debug: bool) -> None:
    """Run the local admin API for the editor."""
    from .admin.server import run_server

    click.echo(f"Admin API on http://{host}:{port} (local only, no authentication)")
    run_server(host=host, port=port, debug=debug)


if __name__ == "__main__":
    cli()

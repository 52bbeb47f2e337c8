"""CLI entry point for release-conductor."""

from __future__ import annotations

import asyncio
import functools
import re
from collections.abc import Callable, Coroutine
from typing import Any

import click

from .config import DEFAULT_CONFIG_FILE, DEFAULT_MANIFEST_FILE, ReleaserConfig, ReleaseType
from .errors import ReleaseConductorError
from .github import GhHosting
from .log import bind_context, setup_logging
from .manifest import Manifest
from .shell import step

REPO_URL_PATTERN = re.compile(
    r"^(?:https?://github\.com/|git@github\.com:)?"
    r"(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+?)(?:\.git)?/?$"
)


def parse_repo_url(repo_url: str) -> tuple[str, str]:
    """Split ``owner/repo`` (or a GitHub URL) into owner and repo.

    Raises:
        click.BadParameter: If the value is not a repository reference.
    """
    match = REPO_URL_PATTERN.match(repo_url.strip())
    if not match:
        raise click.BadParameter(f"not a repository: {repo_url}", param_hint="--repo-url")
    return match.group("owner"), match.group("repo")


def manifest_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command."""
    options = [
        click.option("--repo-url", required=True, help="Repository, as owner/repo or URL."),
        click.option("--target-branch", help="Branch to release from [default: repo default]."),
        click.option(
            "--config-file",
            default=DEFAULT_CONFIG_FILE,
            show_default=True,
            help="Config file path.",
        ),
        click.option(
            "--manifest-file",
            default=DEFAULT_MANIFEST_FILE,
            show_default=True,
            help="Released versions manifest path.",
        ),
        click.option("--dry-run", is_flag=True, help="Print results without changing anything."),
        click.option(
            "--release-type",
            type=click.Choice([t.value for t in ReleaseType]),
            help="Single-package mode: ignore the config file and release one path.",
        ),
        click.option("--path", default=".", show_default=True, help="Single-package mode: path."),
        click.option("--component", help="Single-package mode: component name."),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


def run_async(fn: Callable[..., Coroutine[Any, Any, None]]) -> Callable[..., None]:
    """Run an async command, reporting library errors as click errors."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> None:
        try:
            asyncio.run(fn(*args, **kwargs))
        except ReleaseConductorError as e:
            raise click.ClickException(str(e)) from e

    return wrapper


async def build_manifest(
    repo_url: str,
    target_branch: str | None,
    config_file: str,
    manifest_file: str,
    release_type: str | None,
    path: str,
    component: str | None,
    **options: Any,
) -> Manifest:
    owner, repo = parse_repo_url(repo_url)
    bind_context(repository=f"{owner}/{repo}")
    hosting = await GhHosting.create(owner, repo)
    branch = target_branch or hosting.repository.default_branch
    if release_type:
        config = ReleaserConfig(release_type=ReleaseType(release_type), component=component)
        return await Manifest.from_config(hosting, branch, config, path=path, **options)
    return await Manifest.from_manifest(hosting, branch, config_file, manifest_file, **options)


@click.group()
@click.version_option(package_name="release-conductor")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines.")
def cli(log_level: str, json_logs: bool) -> None:
    """Release pull requests and releases from conventional commits."""
    setup_logging(level=log_level, json_format=json_logs)


@cli.command("release-pr")
@manifest_options
@click.option("--fork", is_flag=True, help="Push the release branch to a fork.")
@click.option("--draft", is_flag=True, help="Open pull requests as drafts.")
@run_async
async def release_pr(dry_run: bool, fork: bool, draft: bool, **kwargs: Any) -> None:
    """Open or update the release pull request(s)."""
    manifest = await build_manifest(**kwargs, fork=fork, draft=draft)
    if not dry_run:
        numbers = await manifest.create_pull_requests()
        for number in numbers:
            click.echo(f"✓ #{number}" if number is not None else "✓ unchanged")
        return

    pull_requests = await manifest.build_pull_requests()
    if not pull_requests:
        click.echo("No release pull requests to open.")
    for pull_request in pull_requests:
        step(f"{pull_request.title}  ({pull_request.head_ref_name})")
        click.echo(str(pull_request.body))
        click.echo()
        for update in pull_request.updates:
            click.echo(f"  update: {update.path}")


@cli.command("github-release")
@manifest_options
@run_async
async def github_release(dry_run: bool, **kwargs: Any) -> None:
    """Tag and publish releases for merged release pull requests."""
    manifest = await build_manifest(**kwargs)
    if not dry_run:
        for created in await manifest.create_releases():
            click.echo(f"✓ {created.tag_name} {created.url}")
        return

    candidates = await manifest.build_releases()
    if not candidates:
        click.echo("No releases to create.")
    for candidate in candidates:
        release = candidate.release
        step(f"{release.tag} @ {release.sha}  (#{candidate.pull_request.number})")
        click.echo(candidate.release.notes)

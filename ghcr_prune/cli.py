"""ghcr-prune CLI — the main entry point."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from ghcr_prune import __version__
from ghcr_prune.errors import ConfigurationError, PruneError

console = Console()
err_console = Console(stderr=True)


@click.group()
@click.version_option(version=__version__)
def main():
    """ghcr-prune — remove outdated container images from GitHub Container Registry.

    Versions are kept or deleted based on their tags and age. Platform
    manifests referenced by a kept multi-platform image are always kept.
    """


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


# ── Prune ────────────────────────────────────────────────────────────


@main.command()
@click.option("--owner", envvar="GHCR_PRUNE_OWNER", default=None, help="Package owner (user or organization)")
@click.option("--name", envvar="GHCR_PRUNE_NAME", default=None, help="Package name")
@click.option("--token", envvar="GITHUB_TOKEN", default=None, help="GitHub API token (default: $GITHUB_TOKEN)")
@click.option(
    "--tag-pattern",
    "-t",
    "tag_patterns",
    multiple=True,
    help="Glob pattern, '!' prefix to exclude; the last matching pattern wins",
)
@click.option("--matching-tags-retention-duration", default=None, help="ISO 8601 duration for images with matching tags")
@click.option("--mismatching-tags-retention-duration", default=None, help="ISO 8601 duration for images with mismatching tags")
@click.option("--untagged-retention-duration", default=None, help="ISO 8601 duration for untagged images")
@click.option("--dry-run/--no-dry-run", default=None, help="Only report what would be deleted")
@click.option("--config", "-c", "config_path", default=None, type=click.Path(dir_okay=False), help="YAML config file")
@click.option("--json-output", "-o", default=None, help="Write deleted versions as JSON to this file")
@click.option("--api-url", default=None, help="GitHub REST API base URL")
@click.option("--registry-url", default=None, help="Container registry base URL")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def prune(
    owner: str | None,
    name: str | None,
    token: str | None,
    tag_patterns: tuple,
    matching_tags_retention_duration: str | None,
    mismatching_tags_retention_duration: str | None,
    untagged_retention_duration: str | None,
    dry_run: bool | None,
    config_path: str | None,
    json_output: str | None,
    api_url: str | None,
    registry_url: str | None,
    verbose: bool,
):
    """Delete outdated versions of a container package.

    Durations are ISO 8601 (P30D, PT12H); the leading P may be omitted.
    A category without a duration is never deleted.
    """
    from ghcr_prune.config import build_config, load_config_file, merge_values

    _configure_logging(verbose)

    try:
        file_values = load_config_file(config_path) if config_path else {}
        config = build_config(
            merge_values(
                file_values,
                {
                    "owner": owner,
                    "name": name,
                    "token": token,
                    "tag-patterns": list(tag_patterns) or None,
                    "matching-tags-retention-duration": matching_tags_retention_duration,
                    "mismatching-tags-retention-duration": mismatching_tags_retention_duration,
                    "untagged-retention-duration": untagged_retention_duration,
                    "dry-run": dry_run,
                    "api-url": api_url,
                    "registry-url": registry_url,
                },
            )
        )
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/] {escape(str(e))}")
        raise SystemExit(1) from e

    mode = "[yellow]dry run[/]" if config.dry_run else "[red]deleting[/]"
    console.print(f"\n[bold blue]ghcr-prune[/] — {config.owner}/{config.name} ({mode})\n")

    def report(result):
        _write_outputs(result, json_output)
        _print_result(result)

    try:
        asyncio.run(_run_prune(config, report))
    except (PruneError, httpx.HTTPError) as e:
        console.print(f"[red]Prune failed:[/] {escape(str(e))}")
        raise SystemExit(1) from e


async def _run_prune(config, report):
    from ghcr_prune.prune.executor import PruneExecutor
    from ghcr_prune.registry.client import create_api_client, create_registry_client
    from ghcr_prune.registry.manifests import ManifestResolver
    from ghcr_prune.registry.packages import open_package

    async with create_api_client(config.token, config.api_url) as api, create_registry_client(
        config.token, config.registry_url
    ) as registry:
        store = await open_package(api, config.owner, config.name)
        resolver = ManifestResolver(registry, config.owner.lower(), config.name)
        executor = PruneExecutor(store, resolver, config.build_policy(), dry_run=config.dry_run)
        return await executor.run(report=report)


def _write_outputs(result, json_output: str | None) -> None:
    from ghcr_prune.prune.report import write_github_outputs, write_json_output

    if json_output:
        path = write_json_output(result, json_output)
        console.print(f"  Deleted versions written to: {path}")
    write_github_outputs(result)


def _print_result(result) -> None:
    verb = "Would delete" if result.dry_run else "Deleted"

    if not result.deleted:
        console.print("[green]Nothing to delete.[/]")
        return

    table = Table(title=f"{verb} ({result.deleted_count} of {result.total_versions} versions)")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Digest", style="cyan")
    table.add_column("Tags")
    table.add_column("Updated")

    for version in result.deleted:
        table.add_row(
            str(version.id),
            version.name,
            ", ".join(version.tags) or "[dim]<untagged>[/]",
            version.updated_at.isoformat(),
        )

    console.print(table)


# ── Configuration helpers ────────────────────────────────────────────


@main.command(name="check-duration")
@click.argument("value")
def check_duration(value: str):
    """Show how a retention duration is parsed and the deadline it gives now."""
    from ghcr_prune.retention.durations import parse_duration

    try:
        duration = parse_duration(value)
    except ConfigurationError as e:
        console.print(f"[red]x[/] {escape(str(e))}")
        raise SystemExit(1) from e

    if duration is None:
        console.print("[yellow]Empty duration: this category is never deleted.[/]")
        return

    now = datetime.now(timezone.utc)
    console.print(f"  Duration: [cyan]{duration}[/]")
    console.print(f"  Deadline: {duration.subtract_from(now).isoformat()}")


@main.command(name="match-tags")
@click.argument("tags", nargs=-1, required=True)
@click.option("--tag-pattern", "-t", "tag_patterns", multiple=True, help="Glob pattern, '!' prefix to exclude")
def match_tags(tags: tuple, tag_patterns: tuple):
    """Show which TAGS are matching under a set of tag patterns."""
    from ghcr_prune.retention.patterns import TagPatterns

    try:
        patterns = TagPatterns.from_lines(list(tag_patterns))
    except ConfigurationError as e:
        console.print(f"[red]x[/] {escape(str(e))}")
        raise SystemExit(1) from e

    table = Table(title=f"Tag classification ({len(patterns)} rules)")
    table.add_column("Tag", style="cyan")
    table.add_column("Matching", justify="center")
    table.add_column("Decided by")

    for tag in tags:
        rule = patterns.decisive_rule(tag)
        matching = "[green]Y[/]" if patterns.matches(tag) else "[red]N[/]"
        table.add_row(escape(tag), matching, escape(str(rule)) if rule else "[dim]no rule[/]")

    console.print(table)


if __name__ == "__main__":
    main()

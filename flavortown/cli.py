"""
Command-line interface for flavortown.

Each command builds one ``EnrichmentApp`` from the environment, runs a
workflow or service loop, prints progress and a token/cost summary, and
exits 1 on a fatal top-level error.
"""

from __future__ import annotations

import asyncio
import time
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .app import EnrichmentApp
from .core.config import EnrichmentConfig
from .core.exceptions import EnrichmentError
from .core.pricing import TokenTracker
from .repositories import Err
from .schemas.records import StatusCriteria
from .schemas.workflow import WorkflowResult
from .services.long_form import LONG_FORM_MODEL, ExistingRestaurantData
from .utils.logger import setup_logging
from .workflows import (
    ManualAdditionInput,
    RefreshInput,
    RefreshScope,
    StatusSweepInput,
)

app = typer.Typer(help="Diners, Drive-Ins and Dives directory enrichment.", no_args_is_help=True)
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1


def _build_app() -> EnrichmentApp:
    config = EnrichmentConfig.from_env()
    setup_logging(config.log_level, config.log_dir)
    return EnrichmentApp(config)


def _mode(dry_run: bool) -> str:
    return "[yellow]DRY RUN[/]" if dry_run else "[green]LIVE[/]"


def _print_usage(tokens: int, prompt: int, completion: int, cost: float, elapsed: float) -> None:
    console.print(f"Time: {elapsed:.1f}s")
    console.print(f"Tokens: {tokens:,} ({prompt:,} in / {completion:,} out)")
    console.print(f"Estimated cost: ${cost:.4f}")


def _print_workflow_result(result: WorkflowResult, tracker: TokenTracker) -> None:
    table = Table(title=f"{result.workflow_name} ({result.status.value})")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Tokens", justify="right")
    table.add_column("Detail")
    for step in result.steps:
        detail = step.error or ""
        if not detail and step.metadata:
            detail = ", ".join(f"{k}={v}" for k, v in step.metadata.items())
        table.add_row(
            str(step.step_number),
            step.name,
            step.status.value,
            str(step.tokens_used or ""),
            detail,
        )
    console.print(table)

    for error in result.errors:
        colour = "red" if error.fatal else "yellow"
        console.print(f"[{colour}]{error.code}[/]: {error.message}")

    usage = tracker.total
    _print_usage(
        usage.total_tokens,
        usage.prompt_tokens,
        usage.completion_tokens,
        result.total_cost.estimated_usd,
        result.duration_ms / 1000,
    )


async def _run_workflow(factory, input) -> WorkflowResult:
    workflow = factory()
    result = await workflow.execute(input)
    _print_workflow_result(result, workflow.tracker)
    return result


def _run(coro) -> int:
    """Run *coro* and translate top-level failures into an exit code."""
    try:
        return asyncio.run(coro)
    except EnrichmentError as exc:
        console.print(f"[red]Error:[/] {exc}")
        return EXIT_CODE_FAIL
    except Exception as exc:
        console.print(f"[red]Fatal error:[/] {exc}")
        return EXIT_CODE_FAIL


@app.command("add-restaurant")
def add_restaurant(
    restaurant_id: str = typer.Argument(..., help="UUID of the restaurant row"),
    name: str = typer.Argument(..., help="Restaurant name"),
    city: str = typer.Argument(..., help="City"),
    state: Optional[str] = typer.Option(None, "--state", "-s", help="State or province"),
    episode_title: Optional[str] = typer.Option(None, "--episode", "-e", help="Episode title for context"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Compute everything but write nothing"),
):
    """Enrich and verify a restaurant that was just added by hand."""

    async def _main() -> int:
        enrichment_app = _build_app()
        try:
            console.print(f"Adding [bold]{name}[/] ({city}) - {_mode(dry_run)}")
            result = await _run_workflow(
                enrichment_app.manual_addition_workflow,
                ManualAdditionInput(
                    restaurant_id=restaurant_id,
                    name=name,
                    city=city,
                    state=state,
                    episode_title=episode_title,
                    dry_run=dry_run,
                ),
            )
            return EXIT_CODE_OK if result.success else EXIT_CODE_FAIL
        finally:
            await enrichment_app.aclose()

    raise typer.Exit(code=_run(_main()))


@app.command()
def refresh(
    restaurant_id: Optional[str] = typer.Argument(None, help="Restaurant UUID; omit to refresh stale restaurants"),
    data: bool = typer.Option(True, "--data/--no-data", help="Re-enrich description, cuisines, price and quote"),
    status: bool = typer.Option(True, "--status/--no-status", help="Re-verify open/closed status"),
    days: int = typer.Option(90, "--days", help="Stale threshold when no ID is given"),
    limit: int = typer.Option(10, "--limit", help="Maximum stale restaurants to refresh"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Compute everything but write nothing"),
):
    """Refresh one restaurant, or every restaurant not enriched in --days."""
    scope = RefreshScope(data=data, status=status)

    async def _main() -> int:
        enrichment_app = _build_app()
        try:
            if restaurant_id:
                ids = [restaurant_id]
            else:
                stale = await enrichment_app.restaurants.get_all_stale(days, limit)
                if isinstance(stale, Err):
                    console.print(f"[red]Database error:[/] {stale.error}")
                    return EXIT_CODE_FAIL
                ids = [record.id for record in stale.data]
                if not ids:
                    console.print("[green]No restaurants need refreshing.[/]")
                    return EXIT_CODE_OK
                console.print(f"Found {len(ids)} stale restaurant(s) - {_mode(dry_run)}")

            failed = 0
            for index, rid in enumerate(ids, start=1):
                console.print(f"[{index}/{len(ids)}] {rid}")
                result = await _run_workflow(
                    enrichment_app.refresh_workflow,
                    RefreshInput(restaurant_id=rid, scope=scope, dry_run=dry_run),
                )
                if not result.success:
                    failed += 1
            console.print(f"Succeeded: {len(ids) - failed}  Failed: {failed}")
            return EXIT_CODE_FAIL if restaurant_id and failed else EXIT_CODE_OK
        finally:
            await enrichment_app.aclose()

    raise typer.Exit(code=_run(_main()))


@app.command()
def sweep(
    restaurant_ids: Optional[List[str]] = typer.Option(None, "--id", help="Explicit restaurant UUID (repeatable)"),
    limit: int = typer.Option(50, "--limit", help="Maximum restaurants to verify"),
    no_limit: bool = typer.Option(False, "--no-limit", help="Verify every matching restaurant"),
    all_restaurants: bool = typer.Option(False, "--all", help="Ignore the last-verified filter"),
    days: int = typer.Option(180, "--days", help="Only restaurants not verified in this many days"),
    status_filter: Optional[str] = typer.Option(None, "--status", help="Only restaurants with this status"),
    city: Optional[str] = typer.Option(None, "--city", help="Only restaurants in this city"),
    min_confidence: float = typer.Option(0.75, "--min-confidence", help="Minimum confidence to write a change"),
    concurrency: int = typer.Option(10, "--concurrency", help="Restaurants verified concurrently per batch"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Compute updates but write nothing"),
):
    """Re-verify open/closed status across many restaurants."""
    if restaurant_ids:
        sweep_input = StatusSweepInput(restaurant_ids=list(restaurant_ids))
    else:
        try:
            criteria = StatusCriteria(
                not_verified_in_days=None if all_restaurants else days,
                status=status_filter,
                city=city,
            )
        except ValueError as exc:
            console.print(f"[red]Invalid filter:[/] {exc}")
            raise typer.Exit(code=EXIT_CODE_FAIL)
        sweep_input = StatusSweepInput(criteria=criteria)
    sweep_input.limit = None if no_limit else limit
    sweep_input.min_confidence = min_confidence
    sweep_input.batch_size = concurrency
    sweep_input.dry_run = dry_run

    async def _main() -> int:
        enrichment_app = _build_app()
        try:
            console.print(f"Status sweep - {_mode(dry_run)}, min confidence {min_confidence}")
            result = await _run_workflow(enrichment_app.status_sweep_workflow, sweep_input)
            if result.output is not None:
                output = result.output
                for update in output.updates:
                    console.print(
                        f"  {update.restaurant_name}: {update.old_status} -> "
                        f"[bold]{update.new_status}[/] ({update.confidence:.2f})"
                    )
                console.print(
                    f"Processed: {output.total_processed}  Updated: {output.total_updated}  "
                    f"Skipped: {output.total_skipped}  Failed: {output.total_failed}"
                )
            return EXIT_CODE_OK if result.success else EXIT_CODE_FAIL
        finally:
            await enrichment_app.aclose()

    raise typer.Exit(code=_run(_main()))


@app.command()
def episodes(
    limit: int = typer.Option(10, "--limit", help="Maximum episodes to describe"),
    all_episodes: bool = typer.Option(False, "--all", help="Regenerate existing meta descriptions too"),
    dry_run: bool = typer.Option(False, "--dry-run", help="List episodes without generating"),
):
    """Generate SEO meta descriptions for episodes."""

    async def _main() -> int:
        enrichment_app = _build_app()
        try:
            found = await enrichment_app.episodes.find_for_meta_description(limit, include_described=all_episodes)
            if isinstance(found, Err):
                console.print(f"[red]Database error:[/] {found.error}")
                return EXIT_CODE_FAIL
            if not found.data:
                console.print("[green]No episodes need enrichment.[/]")
                return EXIT_CODE_OK

            tracker = TokenTracker()
            started = time.monotonic()
            succeeded = failed = 0
            for index, episode in enumerate(found.data, start=1):
                console.print(f"[{index}/{len(found.data)}] S{episode.season}E{episode.episode_number}: {episode.title}")
                if dry_run:
                    continue

                restaurants = await enrichment_app.episodes.get_episode_restaurants(episode.id)
                if isinstance(restaurants, Err):
                    console.print(f"      [red]Failed to fetch restaurants:[/] {restaurants.error}")
                    failed += 1
                    continue
                names = [r.name for r in restaurants.data]
                if not names:
                    console.print("      [yellow]No restaurants linked - skipping[/]")
                    continue

                result = await enrichment_app.episode_descriptions.generate_episode_description(
                    episode.id, episode.season or 0, episode.episode_number or 0, episode.title, names,
                )
                tracker.track(result.tokens_used)
                if not result.success:
                    console.print(f"      [yellow]Generation failed:[/] {result.error}")
                    failed += 1
                    continue

                update = await enrichment_app.episodes.update_meta_description(episode.id, result.meta_description)
                if isinstance(update, Err):
                    console.print(f"      [red]Database update failed:[/] {update.error}")
                    failed += 1
                else:
                    succeeded += 1

            usage = tracker.total
            console.print(f"Succeeded: {succeeded}  Failed: {failed}")
            _print_usage(
                usage.total_tokens, usage.prompt_tokens, usage.completion_tokens,
                tracker.estimate_cost(), time.monotonic() - started,
            )
            return EXIT_CODE_OK
        finally:
            await enrichment_app.aclose()

    raise typer.Exit(code=_run(_main()))


@app.command("long-form")
def long_form(
    limit: int = typer.Option(10, "--limit", help="Maximum restaurants to write"),
    no_limit: bool = typer.Option(False, "--no-limit", help="Process every matching restaurant"),
    all_restaurants: bool = typer.Option(False, "--all", help="Regenerate existing long-form content too"),
    concurrency: int = typer.Option(10, "--concurrency", help="Restaurants processed in parallel"),
    dry_run: bool = typer.Option(False, "--dry-run", help="List restaurants without generating"),
):
    """Generate long-form page content for restaurants."""
    if concurrency < 1:
        console.print("[red]--concurrency must be at least 1[/]")
        raise typer.Exit(code=EXIT_CODE_FAIL)

    async def _main() -> int:
        enrichment_app = _build_app()
        try:
            found = await enrichment_app.restaurants.find_for_long_form(
                None if no_limit else limit, include_enriched=all_restaurants,
            )
            if isinstance(found, Err):
                console.print(f"[red]Database error:[/] {found.error}")
                return EXIT_CODE_FAIL
            candidates = found.data
            if not candidates:
                console.print("[green]No restaurants need long-form enrichment.[/]")
                return EXIT_CODE_OK
            console.print(f"Found {len(candidates)} restaurant(s) - {_mode(dry_run)}")
            if dry_run:
                for candidate in candidates:
                    console.print(f"  {candidate.name} ({candidate.city})")
                return EXIT_CODE_OK

            tracker = TokenTracker()
            started = time.monotonic()
            semaphore = asyncio.Semaphore(concurrency)
            counts = {"succeeded": 0, "failed": 0}

            async def _process(candidate) -> None:
                async with semaphore:
                    try:
                        result = await enrichment_app.long_form.generate_long_form_content(
                            candidate.id,
                            candidate.name,
                            candidate.city or "",
                            candidate.state,
                            ExistingRestaurantData(
                                description=candidate.description,
                                guy_quote=candidate.guy_quote,
                                segment_notes=candidate.segment_notes,
                                cuisines=candidate.cuisines,
                                price_tier=candidate.price_tier,
                                status=candidate.status,
                            ),
                        )
                    except EnrichmentError as exc:
                        console.print(f"  [red]{candidate.name}:[/] {exc}")
                        counts["failed"] += 1
                        return
                    tracker.track(result.tokens_used)
                    if not result.success:
                        console.print(f"  [yellow]{candidate.name}:[/] {result.error}")
                        counts["failed"] += 1
                        return
                    update = await enrichment_app.restaurants.update_long_form_content(candidate.id, result.content)
                    if isinstance(update, Err):
                        console.print(f"  [red]{candidate.name}:[/] {update.error}")
                        counts["failed"] += 1
                        return
                    console.print(f"  {candidate.name}: {result.word_count} words")
                    counts["succeeded"] += 1

            await asyncio.gather(*(_process(c) for c in candidates))

            usage = tracker.total
            console.print(f"Succeeded: {counts['succeeded']}  Failed: {counts['failed']}")
            _print_usage(
                usage.total_tokens, usage.prompt_tokens, usage.completion_tokens,
                tracker.estimate_cost(LONG_FORM_MODEL), time.monotonic() - started,
            )
            return EXIT_CODE_OK
        finally:
            await enrichment_app.aclose()

    raise typer.Exit(code=_run(_main()))


@app.command("cache-stats")
def cache_stats():
    """Show search cache contents by type and source."""

    async def _main() -> int:
        enrichment_app = _build_app()
        try:
            stats = await enrichment_app.cache.stats()
        finally:
            await enrichment_app.aclose()

        table = Table(title="Search cache")
        table.add_column("Key")
        table.add_column("Entries", justify="right")
        table.add_row("total", str(stats.total))
        table.add_row("expired", str(stats.expired))
        for entity_type, count in sorted(stats.by_type.items()):
            table.add_row(f"type: {entity_type}", str(count))
        for source, count in sorted(stats.by_source.items()):
            table.add_row(f"source: {source}", str(count))
        console.print(table)
        return EXIT_CODE_OK

    raise typer.Exit(code=_run(_main()))


@app.command("invalidate-cache")
def invalidate_cache(
    entity_type: str = typer.Argument(..., help="restaurant, episode or city"),
    entity_id: Optional[str] = typer.Option(None, "--id", help="Only entries for this entity"),
):
    """Delete cached search results so the next run fetches fresh ones."""

    async def _main() -> int:
        enrichment_app = _build_app()
        try:
            removed = await enrichment_app.cache.invalidate(entity_type, entity_id)
        finally:
            await enrichment_app.aclose()
        target = f"{entity_type} {entity_id}" if entity_id else entity_type
        console.print(f"[green]Invalidated {removed} cache entries for {target}[/]")
        return EXIT_CODE_OK

    raise typer.Exit(code=_run(_main()))


if __name__ == "__main__":
    app()

#!/usr/bin/env python3
"""
CLI to run Geoscore jobs outside the API.

Usage:
    python scripts/run_pipeline.py init-db
    python scripts/run_pipeline.py sample <prompt-id> --providers openai,anthropic --force
    python scripts/run_pipeline.py score <brand-id> --period week
    python scripts/run_pipeline.py serp <brand-id> --location "United States"
    python scripts/run_pipeline.py search "best crm for startups" --limit 10
"""

import asyncio
import json
from pathlib import Path

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from geoscore.clients.base import APIError
from geoscore.config import get_settings
from geoscore.db.repository import Repository
from geoscore.integrations import Integrations
from geoscore.models.analysis import ScorePeriod, VisibilityMetrics
from geoscore.models.serp import Device, SERPResponse
from geoscore.pipeline.errors import JobInputError, SerpNotConfiguredError
from geoscore.pipeline.llm_sampling import DEFAULT_PROVIDERS, LLMSamplingJob, SamplingResult
from geoscore.pipeline.serp_sampling import SerpSamplingJob, SerpSamplingOptions, SerpSamplingSummary
from geoscore.pipeline.visibility_scoring import VisibilityScoringJob
from geoscore.utils.logging import setup_logging

console = Console()


def parse_providers(providers_str: str) -> list[str]:
    """Parse comma-separated provider names."""
    return [p.strip().lower() for p in providers_str.split(",") if p.strip()]


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="INFO",
    help="Logging level",
)
@click.option(
    "--database-url",
    type=str,
    default=None,
    help="Override DATABASE_URL",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str, database_url: str | None) -> None:
    """Run Geoscore sampling and scoring jobs."""
    setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url


def _repository(ctx: click.Context) -> Repository:
    repo = Repository(database_url=ctx.obj.get("database_url"))
    repo.create_tables()
    return repo


@cli.command("init-db")
@click.option("--drop", is_flag=True, help="Drop all tables first")
@click.pass_context
def init_db(ctx: click.Context, drop: bool) -> None:
    """Create database tables."""
    repo = Repository(database_url=ctx.obj.get("database_url"))
    if drop:
        click.confirm("Drop all tables? This deletes every row.", abort=True)
        repo.drop_tables()
    repo.create_tables()
    console.print(f"[green]✓ Tables ready in {repo.database_url.split('@')[-1]}[/green]")


@cli.command()
@click.argument("prompt_id")
@click.option(
    "--providers", "-p",
    type=str,
    default=",".join(DEFAULT_PROVIDERS),
    help="Comma-separated list of LLM providers",
)
@click.option("--model", "-m", type=str, default=None, help="Model override for every provider")
@click.option("--force", is_flag=True, help="Sample even if the prompt is still fresh")
@click.pass_context
def sample(ctx: click.Context, prompt_id: str, providers: str, model: str | None, force: bool) -> None:
    """Sample one prompt across LLM providers."""
    provider_list = parse_providers(providers)
    repo = _repository(ctx)

    console.print(f"\n[bold]LLM Sampling[/bold]")
    console.print(f"Prompt: {prompt_id}")
    console.print(f"Providers: {', '.join(provider_list)}")
    console.print()

    async def run() -> SamplingResult:
        async with Integrations() as integrations:
            job = LLMSamplingJob(repo, integrations.llm)
            return await job.run(prompt_id, providers=provider_list, model=model, force=force)

    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        progress.add_task("Sampling providers...", total=None)
        try:
            result = asyncio.run(run())
        except JobInputError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise SystemExit(1)

    display_sampling_result(result)


@cli.command()
@click.argument("brand_id")
@click.option(
    "--period",
    type=click.Choice([p.value for p in ScorePeriod]),
    default=ScorePeriod.WEEK.value,
    help="Scoring window",
)
@click.pass_context
def score(ctx: click.Context, brand_id: str, period: str) -> None:
    """Calculate and store a visibility score for a brand."""
    repo = _repository(ctx)
    try:
        metrics = VisibilityScoringJob(repo).run(brand_id, ScorePeriod(period))
    except JobInputError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    display_visibility(metrics)


@cli.command()
@click.argument("brand_id")
@click.option("--prompt-id", type=str, default=None, help="Only sample this prompt")
@click.option("--location", "-l", type=str, default=None, help="Search location")
@click.option(
    "--device",
    type=click.Choice([d.value for d in Device]),
    default=Device.DESKTOP.value,
    help="Device to search as",
)
@click.pass_context
def serp(ctx: click.Context, brand_id: str, prompt_id: str | None, location: str | None, device: str) -> None:
    """Record where a brand ranks on Google for its prompts."""
    repo = _repository(ctx)
    options = SerpSamplingOptions(
        prompt_id=prompt_id,
        location=location or get_settings().default_serp_location,
        device=Device(device),
    )

    async def run() -> SerpSamplingSummary:
        async with Integrations() as integrations:
            return await SerpSamplingJob(repo, integrations.serp_client).run(brand_id, options)

    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        progress.add_task("Searching...", total=None)
        try:
            summary = asyncio.run(run())
        except (JobInputError, SerpNotConfiguredError) as e:
            console.print(f"[red]Error: {e}[/red]")
            raise SystemExit(1)

    display_serp_summary(summary)


@cli.command()
@click.argument("query")
@click.option("--location", "-l", type=str, default=None, help="Search location")
@click.option("--limit", type=int, default=10, help="Number of results")
@click.option(
    "--output", "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Write the full response as JSON",
)
def search(query: str, location: str | None, limit: int, output: Path | None) -> None:
    """Run a single DataForSEO Google search."""
    settings = get_settings()

    async def run() -> SERPResponse:
        async with Integrations(settings=settings) as integrations:
            if integrations.dataforseo is None:
                raise SerpNotConfiguredError("DataForSEO credentials are not configured")
            return await integrations.dataforseo.search_google(
                query, location=location or settings.default_serp_location, limit=limit
            )

    try:
        serp = asyncio.run(run())
    except (APIError, SerpNotConfiguredError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    table = Table(title=f"Results for '{query}' ({serp.total_results:,} total)")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Domain", style="magenta")
    table.add_column("Title")
    for r in serp.results:
        table.add_row(str(r.position), r.domain, r.title[:60])
    console.print(table)

    if serp.people_also_ask:
        console.print("\n[bold]People also ask[/bold]")
        for paa in serp.people_also_ask:
            console.print(f"  • {paa.question}")

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(serp.model_dump(mode="json"), indent=2), encoding="utf-8")
        console.print(f"[green]✓ Exported to {output}[/green]")


def display_sampling_result(result: SamplingResult) -> None:
    if result.skipped:
        console.print(f"[yellow]Skipped: {result.reason} (last sampled {result.last_sampled})[/yellow]")
        return

    table = Table(title=f"Run {result.run_id}")
    table.add_column("Provider", style="cyan")
    table.add_column("Model")
    table.add_column("Brand Pos", justify="right", style="green")
    table.add_column("Mentions", justify="right")
    table.add_column("Citations", justify="right")
    table.add_column("Drift", justify="right", style="yellow")
    table.add_column("Cost", justify="right")

    for s in result.results:
        table.add_row(
            s.provider,
            s.model,
            str(s.brand_position) if s.brand_position else "-",
            str(s.mentions),
            str(s.citations),
            str(s.drift_score) if s.drift_score is not None else "-",
            f"${s.cost:.4f}",
        )
    console.print(table)

    for provider, error in result.errors.items():
        console.print(f"[red]✗ {provider}: {error}[/red]")

    console.print(f"\nTotal: {result.total_tokens} tokens, ${result.total_cost:.4f}")
    if result.visibility_score is not None:
        console.print(f"[green]✓ Visibility score: {result.visibility_score}[/green]")


def display_visibility(metrics: VisibilityMetrics) -> None:
    table = Table(title=f"Visibility ({metrics.period.value})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")

    table.add_row("Overall score", str(metrics.overall_score))
    table.add_row("Trend", metrics.trend.value)
    table.add_row("Mention rate", f"{metrics.mention_rate:.1f}%")
    table.add_row("Avg position", f"{metrics.avg_position:.2f}")
    table.add_row("Sentiment", f"{metrics.sentiment_score:.1f}")
    table.add_row("Answers", str(metrics.total_prompts))
    table.add_row("Mentions", str(metrics.total_mentions))
    table.add_row("Citations", str(metrics.citation_count))
    console.print(table)


def display_serp_summary(summary: SerpSamplingSummary) -> None:
    table = Table(title=f"SERP samples ({summary.samples_collected}/{summary.total_samples})")
    table.add_column("Query", style="cyan")
    table.add_column("Position", justify="right", style="green")
    table.add_column("AI Overview", style="magenta")
    table.add_column("Error", style="red")

    for r in summary.results:
        table.add_row(
            r.query[:40],
            str(r.brand_position) if r.brand_position > 0 else "-",
            "mentioned" if r.ai_overview_brand_mentioned else ("yes" if r.ai_overview_present else "-"),
            r.error or "",
        )
    console.print(table)


if __name__ == "__main__":
    cli()

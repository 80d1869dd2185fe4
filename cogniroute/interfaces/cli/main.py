"""
CLI Main - Typer-based command-line interface.

Usage:
    cogniroute ask "Should we adopt congestion pricing?" --complexity complex
    cogniroute reason "Is remote work more productive?"
    cogniroute route "Explain this chart" --max-cost 0.1
    cogniroute similarity "reset my password" "how do I reset my password"
"""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from cogniroute.config import CogniRouteError
from cogniroute.domains.orchestration import ExecutionMode, OrchestrationResult
from cogniroute.domains.routing import Complexity, Urgency

app = typer.Typer(
    name="cogniroute",
    help="CogniRoute - Cost-aware multi-model reasoning orchestrator",
    add_completion=False,
)
console = Console()


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


@app.command()
def ask(
    query: str = typer.Argument(..., help="Query to answer"),
    complexity: Complexity | None = typer.Option(None, "--complexity", "-c", help="Declared complexity"),
    urgency: Urgency = typer.Option(Urgency.MEDIUM, "--urgency", "-u", help="Declared urgency"),
    domain: str = typer.Option("general", "--domain", "-d", help="Request domain"),
    mode: ExecutionMode = typer.Option(ExecutionMode.CHAIN, "--mode", "-m", help="Execution mode"),
    max_cost: float | None = typer.Option(None, "--max-cost", help="Cost ceiling in USD"),
) -> None:
    """Answer a query through the orchestrator."""
    context = {
        "complexity": complexity,
        "urgency": urgency,
        "domain": domain,
        "mode": mode,
        "max_cost": max_cost,
    }
    result = asyncio.run(_process_async(query, context, "Routing query..."))
    _print_result(result)


@app.command()
def reason(
    query: str = typer.Argument(..., help="Question to reason about"),
    domain: str = typer.Option("general", "--domain", "-d", help="Request domain"),
) -> None:
    """Run a tree-of-thoughts search over the configured backends."""
    context = {"domain": domain, "mode": ExecutionMode.TREE}
    result = asyncio.run(_process_async(query, context, "Exploring reasoning paths..."))
    _print_result(result)

    for label, key in (
        ("Alternatives", "alternatives"),
        ("Evidence", "evidence"),
        ("Assumptions", "assumptions"),
        ("Potential Biases", "potential_biases"),
    ):
        items = result.metadata.get(key) or []
        if items:
            console.print(f"\n[bold]{label}:[/bold]")
            for i, item in enumerate(items, 1):
                console.print(f"  {i}. {item}")

    if result.metadata.get("critique_completed") is False and not result.no_conclusion:
        console.print("\n[yellow]Critique step did not complete[/yellow]")


async def _process_async(query: str, context: dict, description: str) -> OrchestrationResult:
    """Build the orchestrator and answer one query."""
    from cogniroute.adapters.llm import LLMService
    from cogniroute.config import get_settings
    from cogniroute.domains.orchestration import CognitiveOrchestrator

    settings = get_settings()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(description, total=None)

        orchestrator = CognitiveOrchestrator.from_settings(settings, LLMService.from_settings(settings))
        try:
            return await orchestrator.process_complex_query(query, context)
        except CogniRouteError as e:
            console.print(f"[red]Error:[/red] {e.message} [dim]({e.code.value})[/dim]")
            raise typer.Exit(1)


def _print_result(result: OrchestrationResult) -> None:
    """Render an orchestration result."""
    if result.no_conclusion:
        console.print(Panel("No agent produced a usable answer.", title="No Conclusion", style="yellow"))
        raise typer.Exit(2)

    console.print(Panel(result.response, title=f"Response ({result.task_id})"))

    table = Table(title="Reasoning Chain")
    table.add_column("Agent", style="cyan")
    table.add_column("Confidence", justify="right")
    table.add_column("Cost", justify="right", style="green")
    table.add_column("Latency", justify="right")
    table.add_column("Verified")

    for step in result.reasoning_chain:
        agent = step.agent if not step.fallback_for else f"{step.agent} (for {step.fallback_for})"
        table.add_row(
            agent,
            f"{step.confidence:.0%}",
            f"${step.cost:.4f}",
            f"{step.latency_ms:.0f} ms",
            "yes" if step.verified else "no",
        )

    console.print(table)
    console.print(f"\n[dim]Confidence: {result.confidence:.0%} | Cost: ${result.cost:.4f}[/dim]")


@app.command()
def route(
    query: str = typer.Argument(..., help="Query to route"),
    complexity: Complexity | None = typer.Option(None, "--complexity", "-c", help="Declared complexity"),
    urgency: Urgency = typer.Option(Urgency.MEDIUM, "--urgency", "-u", help="Declared urgency"),
    max_cost: float | None = typer.Option(None, "--max-cost", help="Cost ceiling in USD"),
    multimodal: bool = typer.Option(False, "--multimodal", help="Require a multimodal agent"),
) -> None:
    """Show the routing decision for a query without calling any backend."""
    from cogniroute.domains.routing import ModelRouter

    router = ModelRouter()
    decision = router.route(
        query,
        complexity=complexity,
        urgency=urgency,
        max_cost=max_cost,
        needs_multimodal=multimodal,
    )

    table = Table(title=f"Routing ({decision.complexity.value})")
    table.add_column("Agent", style="cyan")
    table.add_column("Tier")
    table.add_column("Cost", justify="right", style="green")
    table.add_column("Latency", justify="right")
    table.add_column("Reliability", justify="right")

    for agent_id in decision.agent_ids:
        agent = router.registry.get(agent_id)
        table.add_row(
            agent.id,
            agent.tier.value,
            f"${agent.cost_per_query:.2f}",
            f"{agent.latency_ms:.0f} ms",
            f"{agent.reliability:.0%}",
        )

    console.print(table)
    console.print(f"[bold]Projected cost:[/bold] ${decision.projected_cost:.2f}")
    if decision.dropped_ids:
        console.print(f"[yellow]Dropped:[/yellow] {', '.join(decision.dropped_ids)}")
    if decision.fallback_ids:
        console.print(f"[dim]Fallbacks: {', '.join(decision.fallback_ids)}[/dim]")
    console.print(f"[dim]{decision.reasoning}[/dim]")


@app.command()
def similarity(
    first: str = typer.Argument(..., help="First text"),
    second: str = typer.Argument(..., help="Second text"),
) -> None:
    """Embed two texts and print their cosine similarity."""
    asyncio.run(_similarity_async(first, second))


async def _similarity_async(first: str, second: str) -> None:
    from cogniroute.config import get_settings
    from cogniroute.domains.embedding import create_embedding_provider

    settings = get_settings()
    embedder = create_embedding_provider(settings)

    a = await embedder.embed(first)
    b = await embedder.embed(second)
    score = embedder.similarity(a, b)

    matched = score > settings.cache_similarity_threshold
    verdict = "[green]cache hit[/green]" if matched else "[red]cache miss[/red]"
    console.print(f"Similarity: [bold]{score:.4f}[/bold] ({verdict} at {settings.cache_similarity_threshold})")


@app.command()
def version() -> None:
    """Show version information."""
    from cogniroute import __version__

    console.print(f"CogniRoute v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()

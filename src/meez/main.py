"""
Meez - CLI Entry Point.

Usage:
    meez run [INPUT...]      Run inputs (or the sample set) through the pipeline
    meez health              Check configuration
    meez serve               Run the HTTP API
    meez --help              Show help
"""

import asyncio
import json

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table

app = typer.Typer(
    name="meez",
    help="Meez - recipe ingestion and normalization pipeline.",
    add_completion=False,
)
console = Console()

SAMPLE_INPUTS = [
    "https://www.foodnetwork.com/recipes/food-network-kitchen/nigerian-meat-pies-12514128",
    "https://www.allrecipes.com/swedish-princess-cake-prinsesstarta-recipe-11730456",
    "https://www.halfbakedharvest.com/dijon-salmon/",
    """Recipe Title: Simple Omelet
Ingredients:
- 2 eggs
- 2 tablespoons milk
- Salt and pepper to taste
- 1 tablespoon butter
- 1/4 cup shredded cheese

Instructions:
1. In a bowl, beat the eggs with the milk, salt, and pepper.
2. Melt butter in a skillet over medium heat.
3. Pour in the egg mixture and cook until nearly set.
4. Sprinkle cheese on one half, fold the omelet, and cook until cheese is melted.""",
]


def _to_raw_input(text: str):
    from meez.models import InputKind, RawInput
    from meez.text import detect_input_type

    stripped = text.strip()
    if detect_input_type(stripped) is InputKind.URL:
        if not stripped.lower().startswith(("http://", "https://")):
            stripped = "https://" + stripped
        return RawInput.url(stripped)
    return RawInput.raw_text(text)


def _print_result(result, show_json: bool) -> None:
    summary = Table(show_header=False, box=None)
    summary.add_row("Request", result.request_id)
    summary.add_row("Input", result.input_kind.value)
    summary.add_row("Fetch", result.fetch_method_used.value if result.fetch_method_used else "-")
    summary.add_row("Cache", "hit" if result.from_cache else "miss")
    summary.add_row("Tokens", f"{result.usage.prompt_tokens} prompt / {result.usage.output_tokens} output")
    summary.add_row("Cost", f"${result.cost.get('total_cost_usd', 0):.6f}")
    for stage, ms in result.timings.items():
        summary.add_row(f"  {stage}", f"{ms:.0f}ms")
    console.print(summary)

    if not result.ok:
        console.print(f"[red]❌ Failed at {result.failure.stage.value}: {result.failure.message}[/red]")
        return

    recipe = result.recipe
    console.print(
        f"[green]✅ {recipe.title}[/green] "
        f"[dim]({len(recipe.ingredients)} ingredients, {len(recipe.instructions)} steps, "
        f"yield {recipe.recipe_yield or '?'})[/dim]"
    )
    if result.similar_match:
        console.print(
            f"[yellow]Similar to '{result.similar_match.recipe.title}' "
            f"({result.similar_match.similarity:.2f})[/yellow]"
        )
    if show_json:
        console.print_json(json.dumps(recipe.to_json()))


@app.command()
def run(
    inputs: list[str] = typer.Argument(None, help="URLs or recipe text (default: built-in samples)"),
    force_new: bool = typer.Option(False, "--force-new", help="Skip the similar-recipe suggestion"),
    show_json: bool = typer.Option(True, "--json/--no-json", help="Print the structured recipe"),
    log_prompts: bool = typer.Option(False, "--log-prompts", "-l", help="Log all LLM prompts to prompt_logs/"),
) -> None:
    """Run inputs through the pipeline and print recipes, timings and usage."""
    from meez.config import get_settings
    from meez.llm.prompt_logger import enable_prompt_logging, get_session_log_dir
    from meez.observability import get_session_tracker, init_langsmith, setup_logging
    from meez.services import build_services

    settings = get_settings()
    setup_logging(settings.log_level)
    init_langsmith()
    if log_prompts:
        enable_prompt_logging(True)
        console.print("[dim]📝 Prompt logging enabled. Check prompt_logs/ after the run.[/dim]")

    async def _run_all() -> None:
        services = build_services(settings)
        try:
            for text in inputs or SAMPLE_INPUTS:
                console.print(Panel.fit(text[:100], title="Input", border_style="blue"))
                with Live(Spinner("dots", text="Processing..."), console=console, transient=True):
                    result = await services.pipeline.run(_to_raw_input(text), force_new=force_new)
                _print_result(result, show_json)
        finally:
            await services.aclose()

    asyncio.run(_run_all())

    session = get_session_tracker().summary()
    console.print(
        f"\n[dim]Session: {session['total_calls']} model call(s), "
        f"${session['total_cost_usd']:.6f}[/dim]"
    )
    if log_prompts:
        log_dir = get_session_log_dir()
        if log_dir:
            console.print(f"[dim]📝 Prompts logged to: {log_dir}[/dim]")


@app.command()
def health() -> None:
    """Check configuration."""
    from meez.config import get_settings

    console.print("\n[bold]Meez Health Check[/bold]\n")

    try:
        settings = get_settings()
    except Exception as e:
        console.print(f"\n[red]❌ Configuration error: {e}[/red]")
        console.print("[dim]Make sure you have a .env file with required variables.[/dim]")
        raise typer.Exit(1)

    console.print("✅ Configuration loaded")
    console.print(f"   Environment: {settings.meez_env}")
    console.print(f"   Model: {settings.openai_model}")

    if settings.openai_api_key.startswith("sk-"):
        console.print("✅ OpenAI API key configured")
    else:
        console.print("⚠️  OpenAI API key may be invalid")

    if settings.fallback_enabled:
        console.print("✅ ScraperAPI fallback enabled")
    else:
        console.print("ℹ️  ScraperAPI fallback disabled (no SCRAPERAPI_KEY)")

    if settings.storage_enabled:
        console.print("✅ Supabase cache and similarity index configured")
    else:
        console.print("ℹ️  Supabase not configured, using in-memory stores")

    if settings.langchain_tracing_v2 and settings.langchain_api_key:
        console.print("✅ LangSmith tracing enabled")
    else:
        console.print("ℹ️  LangSmith tracing disabled")

    console.print("\n[green]All checks passed![/green]")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Port"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from meez.config import get_settings
    from meez.observability import setup_logging

    setup_logging(get_settings().log_level)
    uvicorn.run("meez.web.app:app", host=host, port=port)


@app.command()
def version() -> None:
    """Show version information."""
    from meez import __version__

    console.print(f"Meez version {__version__}")


if __name__ == "__main__":
    app()

"""Command line interface for AutoDocGen."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .ai_service import AIConfigError, AIService, AIServiceError
from .analyzer import (
    UniversalAnalyzer,
    analysis_output_path,
    docs_output_path,
    load_analysis,
    save_analysis,
)
from .cache_manager import create_cache_manager
from .config import SUPPORTED_PROVIDERS, ConfigError, Settings, load_settings
from .database import DatabaseError, DocumentStore
from .doc_generator import DocumentationGenerator, GenerationResult
from .framework_detector import FrameworkDetector
from .models import AnalysisResult, FrameworkType
from .prompt_templates import TemplateType
from .scanner import ScanError
from .validators import AnalysisFileValidator, ProjectPathValidator, SettingsValidator
from .watch_service import WatchService

console = Console(legacy_windows=False)
logger = logging.getLogger(__name__)

FRAMEWORK_CHOICES = [f.value for f in FrameworkType if f != FrameworkType.UNKNOWN]
TEMPLATE_CHOICES = [t.value for t in TemplateType]


def setup_logging(level: str = "INFO") -> None:
    """Setup logging with rich formatting."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def ai_options(func):
    """Options shared by commands that call an AI provider."""
    func = click.option("--save-to-db", is_flag=True, help="Save generated documentation to MongoDB")(func)
    func = click.option("--template", type=click.Choice(TEMPLATE_CHOICES), help="Prompt template")(func)
    func = click.option("--api-key", help="AI provider API key")(func)
    func = click.option("--model", help="AI model name")(func)
    func = click.option("--provider", type=click.Choice(SUPPORTED_PROVIDERS), help="AI provider")(func)
    return func


@click.group()
@click.option("--config", "-c", "config_file", type=click.Path(), help="Path to a JSON configuration file")
@click.option("--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set logging level",
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], verbose: bool, log_level: Optional[str]) -> None:
    """AutoDocGen - API documentation from TypeScript/JavaScript web projects."""
    try:
        settings = load_settings(config_file)
    except ConfigError as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)

    if verbose:
        settings.verbose = True
    setup_logging("DEBUG" if settings.verbose else (log_level or settings.log_level))
    ctx.obj = settings


def _apply_ai_overrides(
    settings: Settings,
    provider: Optional[str],
    model: Optional[str],
    template: Optional[str],
) -> None:
    updates = {}
    if provider:
        updates["provider"] = provider
        # A model picked for another provider no longer applies
        if provider != settings.ai.provider and not model:
            updates["model"] = None
    if model:
        updates["model"] = model
    if template:
        updates["template"] = template
    if updates:
        settings.ai = settings.ai.model_copy(update=updates)


@cli.command()
@click.argument("path", type=click.Path())
@click.option("--output", "-o", type=click.Path(), help="Output file for the analysis JSON")
@click.option("--framework", "-f", type=click.Choice(FRAMEWORK_CHOICES), help="Skip detection and force a framework")
@click.option("--ai", "use_ai", is_flag=True, help="Generate AI documentation after the analysis")
@ai_options
@click.pass_obj
def analyze(
    settings: Settings,
    path: str,
    output: Optional[str],
    framework: Optional[str],
    use_ai: bool,
    provider: Optional[str],
    model: Optional[str],
    api_key: Optional[str],
    template: Optional[str],
    save_to_db: bool,
) -> None:
    """Analyze a project and write the analysis JSON."""
    _apply_ai_overrides(settings, provider, model, template)
    console.print(Panel.fit(f"[bold blue]Analyzing project[/bold blue]\n{path}", title="AutoDocGen"))

    analyzer = UniversalAnalyzer(Path(path), settings, framework)
    try:
        result = analyzer.analyze()
    except ScanError as e:
        console.print(f"[red]Analysis failed: {e}[/red]")
        sys.exit(1)

    _display_analysis_summary(result, analyzer.files_processed)

    if output or settings.files.save_raw_analysis:
        output_file = save_analysis(result, analysis_output_path(settings, output))
        console.print(f"[green]Analysis saved to {output_file}[/green]")

    if save_to_db or settings.database.enabled:
        asyncio.run(_save_analysis_to_db(settings, result, path))

    if use_ai:
        _run_ai_generation(settings, result, api_key, save_to_db)


@cli.command()
@click.argument("input_file", type=click.Path())
@click.option("--output", "-o", type=click.Path(), help="Output file for the generated documentation")
@ai_options
@click.pass_obj
def ai(
    settings: Settings,
    input_file: str,
    output: Optional[str],
    provider: Optional[str],
    model: Optional[str],
    api_key: Optional[str],
    template: Optional[str],
    save_to_db: bool,
) -> None:
    """Generate AI documentation from an analysis file."""
    _apply_ai_overrides(settings, provider, model, template)
    result = _load_analysis_or_exit(input_file)
    _run_ai_generation(settings, result, api_key, save_to_db, output=output)


@cli.command("ai:chunks")
@click.argument("input_file", type=click.Path())
@click.option("--output-dir", "-o", type=click.Path(), help="Directory for per-module files")
@ai_options
@click.pass_obj
def ai_chunks(
    settings: Settings,
    input_file: str,
    output_dir: Optional[str],
    provider: Optional[str],
    model: Optional[str],
    api_key: Optional[str],
    template: Optional[str],
    save_to_db: bool,
) -> None:
    """Generate AI documentation per module from an analysis file."""
    _apply_ai_overrides(settings, provider, model, template)
    result = _load_analysis_or_exit(input_file)
    chunk_dir = Path(output_dir) if output_dir else Path(settings.files.output_dir) / "chunks"
    _run_ai_generation(settings, result, api_key, save_to_db, chunk_dir=chunk_dir)


@cli.command()
@click.argument("path", type=click.Path())
@click.option("--verbose", "-v", is_flag=True, help="Show detection indicators")
@click.pass_obj
def detect(settings: Settings, path: str, verbose: bool) -> None:
    """Detect the web framework used by a project."""
    result = FrameworkDetector(Path(path), settings.scan).detect_framework()

    console.print(f"Framework: [bold]{result.framework.value}[/bold]")
    console.print(f"Confidence: {result.confidence}%")
    if verbose:
        console.print("Indicators:")
        for indicator in result.indicators:
            console.print(f"  - {indicator}")


@cli.command()
@click.argument("path", type=click.Path())
@click.option("--port", type=int, help="Status dashboard port")
@click.option("--debounce", type=int, help="Debounce delay in milliseconds")
@click.option("--no-auto-analyze", is_flag=True, help="Do not analyze until a file changes")
@click.pass_obj
def watch(settings: Settings, path: str, port: Optional[int], debounce: Optional[int], no_auto_analyze: bool) -> None:
    """Re-analyze a project whenever its sources change."""
    validation = ProjectPathValidator().validate(path)
    if not validation.valid:
        for error in validation.errors:
            console.print(f"[red]{error}[/red]")
        sys.exit(1)

    service = WatchService(
        Path(path),
        settings,
        port=port,
        debounce_ms=debounce,
        auto_analyze=False if no_auto_analyze else None,
    )
    console.print(Panel.fit(
        f"[bold blue]Watch mode[/bold blue]\n"
        f"Watching {path}\n"
        f"Dashboard: {service.server.url}",
        title="AutoDocGen",
    ))
    console.print("Press Ctrl+C to stop watching")

    try:
        asyncio.run(service.run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Watch mode stopped[/yellow]")


@cli.command()
@click.pass_obj
def config(settings: Settings) -> None:
    """Display current configuration and check setup."""
    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    api_key = settings.api_key_for()
    table.add_row("AI Provider", settings.ai.provider)
    table.add_row("AI Model", settings.ai.resolved_model())
    table.add_row("API Key", api_key[:6] + "..." if api_key else "Not set")
    table.add_row("Template", settings.ai.custom_prompt_file or settings.ai.template)
    table.add_row("Output Directory", settings.files.output_dir)
    table.add_row("Analysis File", settings.files.analysis_filename)
    table.add_row("Docs File", settings.files.docs_filename)
    table.add_row("Database", settings.database.database_name if settings.database.enabled else "Disabled")
    table.add_row("Redis Cache", f"{settings.cache.host}:{settings.cache.port}" if settings.cache.enabled else "Disabled")
    table.add_row("Watch Port", str(settings.watch.port))
    table.add_row("Log Level", settings.log_level)
    console.print(table)

    validation = SettingsValidator(settings).validate_complete_settings()
    for error in validation.errors:
        console.print(f"[red]  X {error}[/red]")
    for warning in validation.warnings:
        console.print(f"[yellow]  ! {warning}[/yellow]")

    if validation.valid:
        console.print("\n[green]Configuration is valid[/green]")
    else:
        console.print("\n[red]Configuration has errors that need to be fixed[/red]")
        sys.exit(1)


@cli.group()
def db() -> None:
    """MongoDB queries."""
    pass


@db.command("stats")
@click.pass_obj
def db_stats(settings: Settings) -> None:
    """Show documentation statistics."""
    asyncio.run(_show_db_stats(settings))


@db.command("latest")
@click.option("--limit", "-n", default=10, type=int, help="Number of documents")
@click.pass_obj
def db_latest(settings: Settings, limit: int) -> None:
    """List the latest generated documents."""
    asyncio.run(_show_latest_documents(settings, limit))


@cli.group()
def cache() -> None:
    """Cache management commands."""
    pass


@cache.command("stats")
@click.pass_obj
def cache_stats(settings: Settings) -> None:
    """Show cache statistics."""
    asyncio.run(_show_cache_stats(settings))


@cache.command("clear")
@click.confirmation_option(prompt="Are you sure you want to clear all cached documentation?")
@click.pass_obj
def cache_clear(settings: Settings) -> None:
    """Clear all cached documentation."""
    asyncio.run(_clear_cache(settings))


def _load_analysis_or_exit(input_file: str) -> AnalysisResult:
    validation = AnalysisFileValidator().validate(input_file)
    if not validation.valid:
        for error in validation.errors:
            console.print(f"[red]{error}[/red]")
        sys.exit(1)
    for warning in validation.warnings:
        console.print(f"[yellow]{warning}[/yellow]")
    return validation.normalized_value


def _run_ai_generation(
    settings: Settings,
    result: AnalysisResult,
    api_key: Optional[str],
    save_to_db: bool,
    output: Optional[str] = None,
    chunk_dir: Optional[Path] = None,
) -> None:
    console.print(f"Generating AI documentation with {settings.ai.provider}/{settings.ai.resolved_model()}...")
    try:
        generations = asyncio.run(_generate_documentation(settings, result, api_key, save_to_db, output, chunk_dir))
    except (AIConfigError, AIServiceError) as e:
        console.print(f"[red]AI documentation generation failed: {e}[/red]")
        sys.exit(1)
    _display_generation_results(generations)


async def _generate_documentation(
    settings: Settings,
    result: AnalysisResult,
    api_key: Optional[str],
    save_to_db: bool,
    output: Optional[str],
    chunk_dir: Optional[Path],
) -> List[GenerationResult]:
    cache_manager = await create_cache_manager(settings.cache)
    store: Optional[DocumentStore] = None
    try:
        service = AIService(settings.ai, api_key=api_key, cache=cache_manager)

        if save_to_db or settings.database.enabled:
            store = DocumentStore(settings.database)
            try:
                await store.connect()
            except DatabaseError as e:
                console.print(f"[yellow]MongoDB unavailable, documentation will not be saved: {e}[/yellow]")
                store = None

        generator = DocumentationGenerator(service, store)
        if chunk_dir is not None:
            return await generator.generate_chunks(result, chunk_dir)

        output_file = docs_output_path(settings, output) if (output or settings.files.save_ai_docs) else None
        return [await generator.generate(result, output_file)]
    finally:
        if store is not None:
            await store.disconnect()
        await cache_manager.disconnect()


async def _save_analysis_to_db(settings: Settings, result: AnalysisResult, project_path: str) -> None:
    try:
        async with DocumentStore(settings.database) as store:
            analysis_id = await store.save_analysis(result, str(Path(project_path).resolve()))
        console.print(f"[green]Analysis saved to MongoDB ({analysis_id})[/green]")
    except DatabaseError as e:
        console.print(f"[yellow]MongoDB save failed: {e}[/yellow]")


async def _show_db_stats(settings: Settings) -> None:
    try:
        async with DocumentStore(settings.database) as store:
            stats = await store.get_analysis_stats()
            chunk_times = await store.get_unique_chunk_times()
    except DatabaseError as e:
        console.print(f"[red]Error reading database: {e}[/red]")
        sys.exit(1)

    table = Table(title="Documentation Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Total Documents", str(stats.total_documents))
    table.add_row("Latest Run", stats.latest_run or "None")
    table.add_row("Chunked Runs", str(len(chunk_times)))
    for framework, count in stats.frameworks.items():
        table.add_row(f"Framework: {framework}", str(count))
    for provider, count in stats.providers.items():
        table.add_row(f"Provider: {provider}", str(count))
    console.print(table)


async def _show_latest_documents(settings: Settings, limit: int) -> None:
    try:
        async with DocumentStore(settings.database) as store:
            documents = await store.get_latest_documentation(limit)
    except DatabaseError as e:
        console.print(f"[red]Error reading database: {e}[/red]")
        sys.exit(1)

    if not documents:
        console.print("[yellow]No documents found[/yellow]")
        return

    table = Table(title="Latest Documents")
    table.add_column("ID", style="cyan")
    table.add_column("Source")
    table.add_column("Provider")
    table.add_column("Model")
    table.add_column("Module")
    table.add_column("Timestamp", style="green")
    for doc in documents:
        table.add_row(
            doc.id or "",
            doc.source,
            doc.provider,
            doc.model,
            str(doc.metadata.get("moduleName", "")),
            doc.timestamp.isoformat(),
        )
    console.print(table)


async def _show_cache_stats(settings: Settings) -> None:
    cache_manager = await create_cache_manager(settings.cache)
    try:
        stats = await cache_manager.get_cache_stats()
    finally:
        await cache_manager.disconnect()

    if stats.get("status") == "disconnected":
        console.print("[yellow]Cache is not connected[/yellow]")
        return
    if stats.get("status") == "error":
        console.print(f"[red]Error getting cache stats: {stats.get('error')}[/red]")
        return

    table = Table(title="Cache Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Status", stats.get("status", "unknown"))
    table.add_row("Redis Version", str(stats.get("redis_version", "unknown")))
    table.add_row("Used Memory", str(stats.get("used_memory", "unknown")))
    table.add_row("Cached Documents", str(stats.get("cached_documents", 0)))
    config = stats.get("config", {})
    table.add_row("Host", str(config.get("host", "unknown")))
    table.add_row("Port", str(config.get("port", "unknown")))
    table.add_row("TTL", f"{config.get('ttl', 'unknown')}s")
    console.print(table)


async def _clear_cache(settings: Settings) -> None:
    cache_manager = await create_cache_manager(settings.cache)
    try:
        if not cache_manager.connected:
            console.print("[yellow]Cache is not connected[/yellow]")
            return
        removed = await cache_manager.clear_cache()
        console.print(f"[green]Cleared {removed} cached documents[/green]")
    finally:
        await cache_manager.disconnect()


def _display_analysis_summary(result: AnalysisResult, files_processed: int) -> None:
    table = Table(title="Analysis Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Framework", result.framework)
    table.add_row("Files", str(files_processed))
    table.add_row("Routes", str(result.metadata.total_routes))
    table.add_row("Controllers", str(result.metadata.total_controllers))
    table.add_row("Services", str(result.metadata.total_services))
    table.add_row("Types", str(result.metadata.total_types))
    table.add_row("Analysis Time", f"{result.metadata.analysis_time:.3f}s")
    console.print(table)


def _display_generation_results(generations: List[GenerationResult]) -> None:
    for generation in generations:
        label = generation.module_name or "project"
        if generation.output_file:
            console.print(f"[green]{label} documentation saved to {generation.output_file}[/green]")
        else:
            console.print(f"[green]{label} documentation generated[/green]")
        for warning in generation.warnings:
            console.print(f"[yellow]{warning}[/yellow]")
    if len(generations) > 1:
        console.print(f"[green]Generated {len(generations)} module documentation files[/green]")


def main() -> None:
    """Main entry point for the CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""repolens CLI interface.

Commands:
- analyze: Analyze a hosted repository and write a JSON report
- serve: Run the HTTP service (SSE progress streaming)
- check: Validate grammars, credentials and the cache backend
- init: Initialize repolens configuration

Global options:
- --config: Path to configuration file
- --verbose: Enable verbose output with timestamps
- --quiet: Suppress info messages
- --ci: JSON log output
- --version: Show version and exit
"""

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer

from repolens import __version__
from repolens.config import RepolensConfig, create_default_config, load_config
from repolens.errors import FatalAnalysisError
from repolens.models.report import AnalysisReport
from repolens.pipeline import AnalysisPipeline, PipelineOptions
from repolens.progress import ProgressEvent
from repolens.utils.logging import configure_from_cli, get_logger

app = typer.Typer(
    name="repolens",
    help="Repository analysis: import graphs, architecture, findings and quality metrics",
    add_completion=False,
    no_args_is_help=True,
)

# Global state
_config: RepolensConfig | None = None
_logger = get_logger()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"repolens {__version__}")
        raise typer.Exit()


def _get_config() -> RepolensConfig:
    return _config if _config is not None else RepolensConfig()


@app.callback()
def main(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output with timestamps"),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Suppress info messages (warnings and errors only)"),
    ] = False,
    ci: Annotated[
        bool,
        typer.Option("--ci", help="Enable CI mode with JSON output"),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """repolens - Repository analysis pipeline.

    Fetches a repository from its hosting provider and reports its import
    graph, architecture, security, technical-debt and performance findings.
    """
    global _config

    configure_from_cli(verbose=verbose, quiet=quiet, ci=ci)

    try:
        _config = load_config(config_path=config)
        if _config.config_path:
            _logger.debug(f"Loaded config from: {_config.config_path}")
    except FileNotFoundError as e:
        _logger.error(str(e))
        raise typer.Exit(1)
    except (ValueError, TypeError) as e:
        _logger.error(f"Failed to load config: {e}")
        raise typer.Exit(1)


# =============================================================================
# analyze command
# =============================================================================


def _log_progress(event: ProgressEvent) -> None:
    _logger.info(f"[{event.percent:3d}%] {event.label}")


async def _run_analysis(config: RepolensConfig, repo: str, options: PipelineOptions) -> AnalysisReport:
    from repolens.cache import create_cache
    from repolens.llm import create_client
    from repolens.providers import GitHubProvider

    cache = create_cache(config.cache) if options.use_cache else None
    if cache is not None:
        await cache.connect()
    try:
        async with GitHubProvider(config.github) as provider:
            pipeline = AnalysisPipeline(
                provider,
                cache=cache,
                llm=create_client(config.llm),
                config=config.pipeline,
            )
            return await pipeline.analyze(repo, options.ref, options, _log_progress)
    finally:
        if cache is not None:
            await cache.close()


@app.command()
def analyze(
    repo: Annotated[
        str,
        typer.Argument(help="Repository URL or owner/name"),
    ],
    ref: Annotated[
        str | None,
        typer.Option("--ref", "-r", help="Branch, tag or commit (default branch if omitted)"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the JSON report here (stdout if omitted)"),
    ] = None,
    no_cache: Annotated[
        bool,
        typer.Option("--no-cache", help="Neither read nor write the analysis cache"),
    ] = False,
    skip_architecture: Annotated[
        bool,
        typer.Option("--skip-architecture", help="Skip the import graph and classification"),
    ] = False,
    skip_quality: Annotated[
        bool,
        typer.Option("--skip-quality", help="Skip per-file quality metrics"),
    ] = False,
    skip_dependencies: Annotated[
        bool,
        typer.Option("--skip-dependencies", help="Skip dependency manifest parsing"),
    ] = False,
    skip_security: Annotated[
        bool,
        typer.Option("--skip-security", help="Skip the security scan"),
    ] = False,
    skip_tech_debt: Annotated[
        bool,
        typer.Option("--skip-tech-debt", help="Skip the technical-debt scan"),
    ] = False,
    skip_performance: Annotated[
        bool,
        typer.Option("--skip-performance", help="Skip the performance scan"),
    ] = False,
    skip_endpoints: Annotated[
        bool,
        typer.Option("--skip-endpoints", help="Skip API endpoint discovery"),
    ] = False,
    skip_history: Annotated[
        bool,
        typer.Option("--skip-history", help="Skip commit history, contributors and hotspots"),
    ] = False,
    skip_llm: Annotated[
        bool,
        typer.Option("--skip-llm", help="Skip LLM summaries (rule-based text is kept)"),
    ] = False,
    llm_findings: Annotated[
        bool,
        typer.Option("--llm-findings", help="Ask the LLM for extra security findings"),
    ] = False,
    fail_on_warning: Annotated[
        bool,
        typer.Option("--fail-on-warning", help="Exit with code 2 when the report has warnings"),
    ] = False,
) -> None:
    """Analyze a repository and write the report as JSON.

    Exit codes:
        0: Analysis completed
        1: Fatal error (invalid identifier, not found, rate limited, ...)
        2: Completed with warnings (only with --fail-on-warning)
    """
    from repolens.service.events import safe_serialize

    config = _get_config()
    options = PipelineOptions(
        architecture=not skip_architecture,
        quality=not skip_quality,
        dependencies=not skip_dependencies,
        security=not skip_security,
        technical_debt=not skip_tech_debt,
        performance=not skip_performance,
        api_endpoints=not skip_endpoints,
        history=not skip_history,
        hotspots=not skip_history,
        ai_summary=not skip_llm,
        ai_architecture=not skip_llm,
        llm_findings=llm_findings and not skip_llm,
        use_cache=not no_cache,
        ref=ref,
    )

    _logger.info(f"Analyzing repository: {repo}")
    try:
        report = asyncio.run(_run_analysis(config, repo, options))
    except FatalAnalysisError as e:
        _logger.error(f"Analysis failed: {e}")
        raise typer.Exit(1)

    status_emoji = "✅" if report.status.value == "completed" else "⚠️"
    _logger.info(f"{status_emoji} Analysis {report.status.value}")
    for warning in report.warnings:
        _logger.warning(f"  [{warning.step}] {warning.message}")

    body = json.dumps(safe_serialize(report), indent=2)
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(body + "\n")
        typer.echo(f"\n📄 Report written to: {output}")
    else:
        typer.echo(body)

    if fail_on_warning and report.has_warnings():
        raise typer.Exit(2)


# =============================================================================
# serve command
# =============================================================================


@app.command()
def serve(
    host: Annotated[
        str | None,
        typer.Option("--host", help="Bind address (config service.host if omitted)"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="Bind port (config service.port if omitted)"),
    ] = None,
) -> None:
    """Run the HTTP service.

    Analyses stream progress over Server-Sent Events from /api/analyze.
    """
    from repolens.service import run_service

    config = _get_config()
    _logger.info(
        f"Starting repolens service on {host or config.service.host}:{port or config.service.port}"
    )
    run_service(config, host=host, port=port)


# =============================================================================
# check command
# =============================================================================


async def _ping_cache(config: RepolensConfig) -> bool | None:
    from repolens.cache import create_cache

    cache = create_cache(config.cache)
    if cache is None:
        return None
    try:
        return await cache.connect() and await cache.ping()
    finally:
        await cache.close()


@app.command()
def check(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results as JSON"),
    ] = False,
) -> None:
    """Validate grammars, credentials and the cache backend.

    Exit codes:
        0: Everything available
        1: A required piece is misconfigured
        2: Only optional pieces missing (warnings)
    """
    from repolens.analyzers.imports import ParserPool
    from repolens.llm import LLMClient

    config = _get_config()
    errors: list[str] = []
    warnings: list[str] = []

    grammars = ParserPool().check_available()
    missing = sorted(name for name, ok in grammars.items() if not ok)
    if missing:
        warnings.append(f"tree-sitter grammars unavailable (regex fallback used): {', '.join(missing)}")

    if not config.github.token:
        warnings.append("No GitHub token; unauthenticated requests are heavily rate limited")

    llm_status = "disabled"
    if config.llm.enabled:
        llm_status = f"{config.llm.provider}/{config.llm.model}"
        if not LLMClient(config.llm).is_configured():
            errors.append(f"LLM provider '{config.llm.provider}' is enabled but has no credentials")
        for warning in config.llm.validate():
            warnings.append(f"LLM: {warning}")

    cache_ok = asyncio.run(_ping_cache(config))
    if cache_ok is False:
        warnings.append(f"Cache backend '{config.cache.backend}' unreachable; runs will not be cached")

    result = {
        "grammars": grammars,
        "github_token": bool(config.github.token),
        "llm": llm_status,
        "cache": "disabled" if cache_ok is None else ("ok" if cache_ok else "unreachable"),
        "errors": errors,
        "warnings": warnings,
    }

    if json_output:
        typer.echo(json.dumps(result, indent=2))
    else:
        typer.echo("\n🔍 Preflight Check Results\n")
        for name, ok in grammars.items():
            typer.echo(f"  {'✅' if ok else '❌'} grammar: {name}")
        typer.echo(f"  {'✅' if config.github.token else '❌'} GitHub token")
        typer.echo(f"  ℹ️  LLM: {llm_status}")
        typer.echo(f"  ℹ️  Cache: {result['cache']}")
        typer.echo()

    if errors:
        if not json_output:
            typer.echo("❌ Preflight check FAILED")
            for error in errors:
                typer.echo(f"   • {error}")
        raise typer.Exit(1)
    if warnings:
        if not json_output:
            typer.echo("⚠️  Preflight check passed with WARNINGS")
            for warning in warnings:
                typer.echo(f"   • {warning}")
        raise typer.Exit(2)
    if not json_output:
        typer.echo("✅ All preflight checks passed")


# =============================================================================
# init command
# =============================================================================


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite existing config"),
    ] = False,
) -> None:
    """Initialize repolens configuration.

    Creates .repolens/config.yaml with commented defaults.
    """
    config_dir = Path(".repolens")
    config_file = config_dir / "config.yaml"

    if config_file.exists() and not force:
        _logger.error(f"Config already exists: {config_file}")
        _logger.info("Use --force to overwrite")
        raise typer.Exit(1)

    config_dir.mkdir(exist_ok=True)
    config_file.write_text(create_default_config())
    _logger.info(f"Created config: {config_file}")

    typer.echo("\n✅ repolens configuration initialized")
    typer.echo(f"   Config: {config_file}")

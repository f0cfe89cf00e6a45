"""edugate CLI — run the proxy server or push a single request through the pipeline.

Usage:
    edugate serve --port 8080
    edugate ask "What makes a strong thesis?" --grade 7
    edugate ask --action analyze_essay --essay-file essay.txt --grade 10 --json
    edugate config
    edugate rules
    edugate check --live
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="edugate",
    help="edugate — grade-aware safety proxy for a hosted LLM.",
    no_args_is_help=True,
)


def _init_logging(level: str | None = None) -> None:
    """Initialize nfo logging from .env config (called once per CLI invocation)."""
    from edugate.env_config import get_env_config
    from edugate.logging_setup import setup_logging

    env = get_env_config()
    setup_logging(level=level or env.log_level, markdown_file=env.log_file)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Bind address (default: EDUGATE_HOST or 0.0.0.0)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: EDUGATE_PORT or 8080)"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Path to .env file (default: .env)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes (development)"),
):
    """Start the HTTP server."""
    import uvicorn

    from edugate.env_config import get_env_config

    env = get_env_config(str(env_file) if env_file else None)
    _init_logging(env.log_level)

    uvicorn.run(
        "edugate.server:app",
        host=host or env.host,
        port=port or env.port,
        log_level=env.log_level.lower(),
        reload=reload,
    )


@app.command()
def ask(
    message: str = typer.Argument("", help="The user message"),
    action: str = typer.Option("chat", "--action", "-a", help="chat|analyze_essay|search_and_analyze|browse_and_analyze"),
    user: str = typer.Option("cli", "--user", "-u", help="User identity for conversation memory"),
    grade: Optional[str] = typer.Option(None, "--grade", "-g", help="Grade designator, e.g. '7' or 'high school'"),
    essay_file: Optional[Path] = typer.Option(None, "--essay-file", "-e", help="Read essay text from this file"),
    url: Optional[str] = typer.Option(None, "--url", help="Target URL for browse_and_analyze"),
    search: Optional[bool] = typer.Option(None, "--search/--no-search", help="Force web search on (--no-search leaves it to the other triggers)"),
    reasoning: Optional[bool] = typer.Option(None, "--reasoning/--no-reasoning", help="Force the reasoning budget on (--no-reasoning leaves it to the other triggers)"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output the full response as JSON"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Path to .env file (default: .env)"),
):
    """Run one request through the orchestrator locally and print the reply."""
    from edugate.env_config import get_env_config
    from edugate.models import ChatRequest
    from edugate.orchestrator import build_services

    _init_logging()
    env = get_env_config(str(env_file) if env_file else None)

    req = ChatRequest.model_validate({
        "userId": user,
        "action": action,
        "message": message,
        "essay": essay_file.read_text() if essay_file else "",
        "grade": grade,
        "url": url,
        "useBraveSearch": search,
        "useReasoning": reasoning,
    })

    async def _run():
        services = await build_services(env)
        try:
            return await services.orchestrator.handle(req)
        finally:
            await services.aclose()

    result = asyncio.run(_run())

    if json_output:
        typer.echo(json.dumps(result.to_json(), indent=2, ensure_ascii=False))
        return

    if result.refused:
        typer.echo(f"[refused: {', '.join(result.reason or [])}]", err=True)
    if result.essay_warning:
        typer.echo(f"[warning] {result.essay_warning}", err=True)
    typer.echo(result.reply)


@app.command("config")
def show_config(
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Path to .env file (default: .env)"),
):
    """Show the resolved configuration with secrets masked."""
    from edugate.env_config import get_env_config, mask_url

    env = get_env_config(str(env_file) if env_file else None)

    def _secret(value: str) -> str:
        if not value:
            return "(not set)"
        return value[:4] + "***" if len(value) > 8 else "***"

    typer.echo(f"completion key:   {_secret(env.completion_api_key)}")
    typer.echo(f"completion url:   {env.completion_url}")
    typer.echo(f"completion model: {env.completion_model or '(raw HTTP)'}")
    typer.echo(f"search key:       {_secret(env.search_api_key)}")
    typer.echo(f"store:            {mask_url(env.store_url) if env.store_url else '(in-memory)'}")
    typer.echo(f"browser:          {env.browser_path or '(disabled)'}")
    typer.echo(f"persist cookies:  {env.persist_cookies}")
    typer.echo(f"extra rules:      {len(env.extra_rules)}")
    typer.echo(f"server:           {env.host}:{env.port} (log level {env.log_level})")


@app.command()
def check(
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Path to .env file (default: .env)"),
    live: bool = typer.Option(False, "--live", help="Open the configured store to confirm it is reachable"),
):
    """Report which collaborators are configured and whether the prompt templates are usable.

    Example:
        edugate check
        edugate check --live
    """
    from edugate.env_config import check_collaborators, get_env_config
    from edugate.prompt_registry import PromptRegistry

    env = get_env_config(str(env_file) if env_file else None)

    typer.echo("edugate check")
    typer.echo("=" * 60)
    for name, info in check_collaborators(env).items():
        icon = "✓" if info["status"] == "configured" else "✗"
        typer.echo(f"   {icon} {name:<14} {info['detail']}")

    if live:
        from edugate.store.backends import open_store

        async def _probe():
            store = await open_store(env.store_url)
            try:
                return store.name, store.durable
            finally:
                await store.close()

        name, durable = asyncio.run(_probe())
        icon = "✓" if durable or not env.store_url else "!"
        typer.echo(f"   {icon} store reachable  {name}{'' if durable else ' (in-memory)'}")

    registry = PromptRegistry()
    problems = registry.validate()
    for problem in problems:
        typer.echo(f"   ! prompts        {problem}")
    if problems:
        raise typer.Exit(code=1)
    typer.echo(f"   ✓ prompts        {len(registry.list_prompts())} templates")


@app.command()
def rules(
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Path to .env file (default: .env)"),
):
    """Print the effective rule list (base rules + configured extras)."""
    from edugate.env_config import get_env_config
    from edugate.policy.rules import RuleSet

    env = get_env_config(str(env_file) if env_file else None)
    typer.echo(RuleSet(env.extra_rules).enumerate())


if __name__ == "__main__":
    app()

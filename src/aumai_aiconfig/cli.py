"""CLI entry point for aumai-aiconfig.

Commands:
  resolve   Resolve an AI configuration from a local flag file.
  render    Render a prompt template against a context and variables.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click

from aumai_aiconfig.context import Context, flatten
from aumai_aiconfig.core import CONTEXT_VARIABLE, ConfigResolver
from aumai_aiconfig.errors import AIConfigError
from aumai_aiconfig.log import setup_logging
from aumai_aiconfig.memory import InMemoryEvaluator, InMemoryEventRecorder
from aumai_aiconfig.models import AIConfig
from aumai_aiconfig.templating import render

__all__ = ["cli"]


def _load_data_file(path: str) -> Any:
    """Load a JSON or YAML document, chosen by file extension.

    Unreadable or unparsable files are reported and exit with status 1.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        click.echo(f"Error: cannot read {path}: {exc}", err=True)
        sys.exit(1)
    if Path(path).suffix.lower() in (".yaml", ".yml"):
        try:
            import yaml  # type: ignore[import-untyped]
        except ImportError:
            click.echo("Error: PyYAML is required. Install with: pip install pyyaml", err=True)
            sys.exit(1)
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            click.echo(f"Error: invalid YAML in {path}: {exc}", err=True)
            sys.exit(1)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        click.echo(f"Error: invalid JSON in {path}: {exc}", err=True)
        sys.exit(1)


def _build_context(
    context_path: str | None,
    context_key: str | None,
    kind: str,
    name: str | None,
) -> Context:
    """Build the evaluation context from a file or from command-line options.

    Context files hold either a single-kind object::

        {"kind": "user", "key": "u-1", "name": "Sandy"}

    or a multi-kind object::

        {"kind": "multi", "user": {"key": "u-1"}, "org": {"key": "o-1"}}
    """
    if context_path is not None:
        data = _load_data_file(context_path)
        if not isinstance(data, dict):
            click.echo("Error: context file must contain an object.", err=True)
            sys.exit(1)
        return Context.from_dict(data)
    if context_key is None:
        click.echo("Error: provide --context or --context-key.", err=True)
        sys.exit(1)
    return Context(kind=kind, key=context_key, name=name)


def _parse_vars(pairs: tuple[str, ...]) -> dict[str, Any]:
    """Parse ``name=value`` pairs; values that are valid JSON are decoded."""
    variables: dict[str, Any] = {}
    for pair in pairs:
        name, sep, raw = pair.partition("=")
        if not sep or not name:
            click.echo(f"Error: --var expects name=value, got {pair!r}.", err=True)
            sys.exit(1)
        try:
            variables[name] = json.loads(raw)
        except json.JSONDecodeError:
            variables[name] = raw
    return variables


def _context_options(func: Any) -> Any:
    options = [
        click.option(
            "--context",
            "context_path",
            default=None,
            type=click.Path(exists=True, dir_okay=False, readable=True),
            help="Path to a JSON/YAML evaluation context.",
        ),
        click.option("--context-key", default=None, help="Key of a single-kind context."),
        click.option("--kind", default="user", show_default=True, help="Kind for --context-key."),
        click.option("--name", default=None, help="Name attribute for --context-key."),
        click.option(
            "--var",
            "var_pairs",
            multiple=True,
            help="Template variable as name=value (repeatable).",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(package_name="aumai-aiconfig")
@click.option(
    "--log-level",
    default="WARNING",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Minimum log level written to stderr.",
)
@click.option(
    "--log-format",
    default="console",
    show_default=True,
    type=click.Choice(["console", "json"]),
)
def cli(log_level: str, log_format: str) -> None:
    """AumAI AIConfig — resolve AI configurations and render prompts."""
    setup_logging(level=log_level, fmt=log_format)


@cli.command("resolve")
@click.option(
    "--flags",
    "flags_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, readable=True),
    help="Path to a JSON/YAML file mapping flag keys to AI config values.",
)
@click.option("--key", "config_key", required=True, help="AI config key to resolve.")
@_context_options
@click.option(
    "--default",
    "default_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, readable=True),
    help="Path to a JSON/YAML default AI config (used when the key is unknown).",
)
@click.option(
    "--output",
    "output_path",
    default=None,
    type=click.Path(dir_okay=False, writable=True),
    help="Optional path to write the resolved config JSON.",
)
def resolve_command(
    flags_path: str,
    config_key: str,
    context_path: str | None,
    context_key: str | None,
    kind: str,
    name: str | None,
    var_pairs: tuple[str, ...],
    default_path: str | None,
    output_path: str | None,
) -> None:
    """Resolve an AI config for a context and print it as JSON.

    Example:

    \b
        aumai-aiconfig resolve --flags flags.yaml --key chat-assistant \\
            --context-key u-1 --name Sandy --var tone=friendly
    """
    try:
        context = _build_context(context_path, context_key, kind, name)
        evaluator = InMemoryEvaluator.from_file(flags_path)
        default = (
            AIConfig.from_dict(_load_data_file(default_path))
            if default_path is not None
            else None
        )
        resolver = ConfigResolver(evaluator, InMemoryEventRecorder())
        config = resolver.resolve(config_key, context, default, _parse_vars(var_pairs))
    except (AIConfigError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    output = {"config": config.to_dict(), "tracker": config.tracker.metadata}
    json_output = json.dumps(output, indent=2)
    if output_path:
        Path(output_path).write_text(json_output, encoding="utf-8")
        click.echo(f"Resolved config written to {output_path}")
    else:
        click.echo(json_output)


@cli.command("render")
@click.option("--template", required=True, help="Template text, e.g. 'Hi {{ldctx.name}}'.")
@_context_options
def render_command(
    template: str,
    context_path: str | None,
    context_key: str | None,
    kind: str,
    name: str | None,
    var_pairs: tuple[str, ...],
) -> None:
    """Render a template with ``ldctx`` bound to the flattened context.

    Example:

    \b
        aumai-aiconfig render --template 'Hello, {{ldctx.name}}!' \\
            --context-key u-1 --name Sandy
    """
    try:
        context = _build_context(context_path, context_key, kind, name)
    except (AIConfigError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    variables = _parse_vars(var_pairs)
    variables[CONTEXT_VARIABLE] = flatten(context)
    click.echo(render(template, variables))


main = cli

if __name__ == "__main__":
    cli()

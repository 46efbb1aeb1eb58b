"""
Main CLI entry point for Strata.

Provides the command-line interface using Click:

    strata show base.yaml prod.yaml            # merged configuration as YAML
    strata show --hide-secrets base.yaml       # with secret values masked
    strata check base.yaml prod.yaml           # exit status only
"""

import json as _json
import logging as _logging
import os as _os
import pathlib as _pathlib
import re as _re
import sys as _sys
import typing as _typing

import click as _click
import pydantic as _pydantic
import rich.console as _rich_console
import rich.syntax as _rich_syntax

import strata
import strata.config as config
import strata.merge as merge
import strata.nodes as nodes
import strata.secrets as secrets

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}

_FILES_ARGUMENT = _click.argument(
    "files",
    nargs=-1,
    required=True,
    type=_click.Path(dir_okay=False, path_type=_pathlib.Path),
)


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(strata.__version__, "--version", prog_name="strata")
@_click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable debug logging",
)
@_click.pass_context
def cli(ctx: _click.Context, verbose: bool) -> None:
    """Strata - layered YAML configuration.

    FILES are merged left to right: the first file is the base, each
    following file is overlaid on top of it.
    """
    try:
        settings = config.Settings()
    except _pydantic.ValidationError as e:
        raise _click.ClickException(f"Invalid STRATA_* environment settings:\n{e}") from None

    level = "DEBUG" if verbose else settings.log_level
    _logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command()
@_FILES_ARGUMENT
@_click.option(
    "--hide-secrets",
    is_flag=True,
    help="Mask secret values, collapsing secret sections to '*'",
)
@_click.option(
    "--structured",
    is_flag=True,
    help="Mask secret values but keep the shape of secret sections (implies --hide-secrets)",
)
@_click.option(
    "--secret-pattern",
    type=str,
    default=None,
    help="Regular expression for secret key names (default: STRATA_SECRET_PATTERN)",
)
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.option(
    "--color/--no-color",
    "use_color",
    default=None,
    help="Enable/disable syntax highlighting (default: auto-detect TTY)",
)
@_click.pass_context
def show(
    ctx: _click.Context,
    files: tuple[_pathlib.Path, ...],
    hide_secrets: bool,
    structured: bool,
    secret_pattern: str | None,
    as_json: bool,
    use_color: bool | None,
) -> None:
    """Show the merged configuration of FILES.

    Examples:
        strata show base.yaml prod.yaml
        strata show --hide-secrets base.yaml prod.yaml
        strata show --structured --json base.yaml
    """
    settings: config.Settings = ctx.obj["settings"]
    loaded = _load(files, settings)
    hide = hide_secrets or structured
    pattern = _secret_pattern(secret_pattern, settings)

    if as_json:
        tree = loaded.to_tree()
        if hide:
            secrets.redact(tree, collapse_structure=not structured, pattern=pattern)
        data = nodes.to_python(tree)
        _click.echo(_json.dumps(data, indent=2))
        return

    if hide:
        yaml_text = loaded.dump_secrets_hidden(structured=structured, pattern=pattern)
    else:
        yaml_text = loaded.dump()

    color_enabled, force_color = _should_use_color(use_color)
    _print_yaml(yaml_text, color=color_enabled, force_color=force_color)


@cli.command()
@_FILES_ARGUMENT
@_click.pass_context
def check(ctx: _click.Context, files: tuple[_pathlib.Path, ...]) -> None:
    """Check that FILES load and merge cleanly."""
    settings: config.Settings = ctx.obj["settings"]
    _load(files, settings)
    _click.echo(f"OK: {len(files)} source(s) merged")


def _load(
    files: tuple[_pathlib.Path, ...],
    settings: config.Settings,
) -> config.Config[_typing.Any]:
    """Load FILES, turning library errors into CLI errors."""
    try:
        return config.from_files(_typing.Any, *files, max_depth=settings.max_depth)
    except (config.ConfigError, merge.MergeError, nodes.AliasCycleError) as e:
        raise _click.ClickException(str(e)) from None


def _secret_pattern(
    cli_value: str | None,
    settings: config.Settings,
) -> secrets.PatternLike:
    """Compile the secret pattern from the CLI flag or settings."""
    if cli_value is None:
        return settings.compiled_secret_pattern()
    try:
        return secrets.compile_pattern(cli_value)
    except _re.error as e:
        raise _click.BadParameter(str(e), param_hint="--secret-pattern") from None


def _should_use_color(cli_flag: bool | None) -> tuple[bool, bool]:
    """Determine whether to use color output.

    Priority:
    1. CLI flag (--color / --no-color) if specified
    2. NO_COLOR env var (if set, disable color) - standard convention
    3. Auto-detect: color if stdout is a TTY

    Returns:
        Tuple of (color_enabled, force_color).
        force_color is True when color was explicitly requested (not auto-detected).
    """
    if cli_flag is not None:
        return (cli_flag, cli_flag)

    # https://no-color.org/
    if _os.environ.get("NO_COLOR") is not None:
        return (False, False)

    return (_sys.stdout.isatty(), False)


def _print_yaml(yaml_text: str, *, color: bool = True, force_color: bool = False) -> None:
    """Print YAML text, optionally with syntax highlighting.

    Args:
        yaml_text: The YAML text to print
        color: Whether to use syntax highlighting
        force_color: Force color even when not a TTY (for piping with --color)
    """
    if not color:
        _click.echo(yaml_text, nl=False)
        return

    # When forcing color (explicit --color flag):
    # - force_terminal=True: output color even when piped
    # - no_color=False: override NO_COLOR env var
    # - color_system='truecolor': override FORCE_COLOR=0 env var
    console = _rich_console.Console(
        force_terminal=force_color,
        no_color=False if force_color else None,
        color_system="truecolor" if force_color else "auto",
    )
    syntax = _rich_syntax.Syntax(
        yaml_text,
        "yaml",
        theme="monokai",
        background_color="default",
    )
    console.print(syntax)


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="strata")


if __name__ == "__main__":
    main()

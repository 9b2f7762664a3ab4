"""Command-line interface for lua-bundler."""

import logging
from typing import Any

import click
from click.core import ParameterSource
from rich.console import Console

from lua_bundler import __version__
from lua_bundler.cache import FileCache
from lua_bundler.config import BundleConfig, load_config
from lua_bundler.exceptions import BundlerError
from lua_bundler.logging import configure_logging, get_level_from_verbosity
from lua_bundler.server import serve_file
from lua_bundler.session import BundleResult, BundlerSession

logger = logging.getLogger(__name__)

console = Console(highlight=False)

TITLE_STYLE = "bold #FAFAFA on #7D56F4"
SUCCESS_STYLE = "bold #04B575"
INFO_STYLE = "bold #61DAFB"
WARNING_STYLE = "bold #FFD700"

# CLI parameter name -> BundleConfig field
OPTION_FIELDS = {
    "entry": "entry",
    "output": "output",
    "release": "release",
    "obfuscate": "obfuscation_level",
    "verbose": "verbose",
    "serve": "serve",
    "port": "port",
    "no_cache": "use_cache",
}


def build_config(ctx: click.Context, config_file: str | None) -> BundleConfig:
    """Merge the optional YAML config with explicitly given CLI flags.

    Flags left at their defaults do not override file values.
    """
    settings: dict[str, Any] = load_config(config_file) if config_file else {}

    for param, field_name in OPTION_FIELDS.items():
        source = ctx.get_parameter_source(param)
        if config_file and source is ParameterSource.DEFAULT:
            continue
        value = ctx.params[param]
        if param == "no_cache":
            value = not value
        elif param == "verbose":
            value = value > 0
        settings[field_name] = value

    config = BundleConfig.from_dict(settings)
    logger.debug(f"Configuration: {config.to_dict()}")
    return config


def print_configuration(config: BundleConfig) -> None:
    console.print(" Lua Script Bundler ", style=TITLE_STYLE)
    console.print()
    console.print("Configuration:", style=INFO_STYLE)
    for line in config.format_text().splitlines():
        console.print(f"  {line}")
    console.print()


def print_success(result: BundleResult, config: BundleConfig) -> None:
    console.print()
    console.print("✅ Successfully bundled!", style=SUCCESS_STYLE)
    console.print(f"[{INFO_STYLE}]📦 Modules embedded:[/] {result.module_count}")

    if config.verbose:
        for record in result.modules:
            origin = "remote" if record.is_remote else "local"
            console.print(f"    {record.key} ({origin})")

    if result.obfuscation_level > 0:
        console.print(f"[{INFO_STYLE}]🔒 Obfuscation:[/] Level {result.obfuscation_level} applied")

    console.print(f"[{SUCCESS_STYLE}]📄 Output:[/] {config.output}")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--entry", "-e", default="main.lua", show_default=True, help="Entry point Lua file")
@click.option("--output", "-o", default="bundle.lua", show_default=True, help="Output bundled file")
@click.option("--release", "-r", is_flag=True, help="Release mode: remove print/warn statements and comments, then minify")
@click.option("--obfuscate", "-O", default=0, type=click.IntRange(min=0),
              help="Obfuscation level (0=none, 1=basic, 2=medium, 3=heavy)")
@click.option("--verbose", "-v", count=True, help="Verbose output (repeat for more)")
@click.option("--serve", "-s", is_flag=True, help="Start HTTP server to serve the output file")
@click.option("--port", "-p", default=8080, show_default=True, type=click.IntRange(1, 65535),
              help="Port for HTTP server (used with --serve)")
@click.option("--no-cache", "-n", is_flag=True, help="Disable HTTP cache for remote scripts")
@click.option("--config", "-c", "config_file", type=click.Path(exists=True, dir_okay=False),
              help="YAML file with bundler settings")
@click.option("--clear-cache", is_flag=True, help="Remove cached remote scripts before bundling")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write logs to this file")
@click.option("--version", is_flag=True, help="Show version and exit")
@click.pass_context
def cli(
    ctx: click.Context,
    entry: str,
    output: str,
    release: bool,
    obfuscate: int,
    verbose: int,
    serve: bool,
    port: int,
    no_cache: bool,
    config_file: str | None,
    clear_cache: bool,
    log_file: str | None,
    version: bool,
) -> None:
    """Bundle a Lua script and its dependencies into a single file.

    Local modules loaded with require() and remote scripts loaded with
    loadstring(game:HttpGet(...))() are embedded in the output.

    \b
    Examples:
      lua-bundler -e main.lua -o bundle.lua --release --obfuscate 2
      lua-bundler -e main.lua -o bundle.lua --serve --port 8080
    """
    if version:
        click.echo(f"lua-bundler {__version__}")
        ctx.exit(0)

    configure_logging(level=get_level_from_verbosity(verbose), log_file=log_file)

    try:
        config = build_config(ctx, config_file)
    except BundlerError as e:
        raise click.ClickException(str(e))

    print_configuration(config)

    if clear_cache:
        removed = FileCache(config.cache_dir).clear()
        console.print(f"[{WARNING_STYLE}]🧹 Cleared cache:[/] {removed} entries")

    console.print("🔄 Processing dependencies...", style=INFO_STYLE)
    try:
        with BundlerSession(config) as session:
            result = session.run()
    except BundlerError as e:
        raise click.ClickException(f"Bundling failed: {e}")

    print_success(result, config)

    if config.serve:
        console.print(f"[{INFO_STYLE}]🌐 Serving:[/] http://localhost:{config.port}/")
        serve_file(config.output, config.port)


def main() -> None:
    """Package entry point for the lua-bundler CLI."""
    cli()

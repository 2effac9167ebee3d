"""Typer application and console entry point for specmodel.

The CLI is a thin shell over :func:`~specmodel.parser.create_model`:

* ``specmodel validate`` builds the model and reports success.
* ``specmodel inspect`` lists the services, methods, messages and enums.
* ``specmodel summary`` prints the top-level model properties.

Each command takes the specification format and source, an optional
service config, and repeated ``--option key=value`` pairs that populate
``Config.source`` (source roots, skip lists, overrides).

:func:`main` is the console-script entry point declared in
``pyproject.toml``.
"""

from __future__ import annotations

import logging
import signal
import sys
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from specmodel import __version__
from specmodel.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="specmodel",
    help="Build and check client-library API models from Discovery, OpenAPI and protobuf sources.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"specmodel {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Route library logging to stderr through Rich."""
    root = logging.getLogger("specmodel")
    root.handlers.clear()
    root.addHandler(
        RichHandler(console=Console(stderr=True), show_time=False, show_path=False)
    )
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.propagate = False


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Install the global output manager and logging configuration."""
    from specmodel.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)


# ------------------------------------------------------------------ #
# Shared options
# ------------------------------------------------------------------ #

_FORMAT_OPTION = typer.Option(
    ..., "--format", "-f", help="Specification format: disco, openapi, protobuf or none."
)
_SOURCE_OPTION = typer.Option(
    "", "--source", "-s", help="Specification file, URL (openapi) or proto directory."
)
_SERVICE_CONFIG_OPTION = typer.Option(
    "", "--service-config", "-c", help="Service config YAML, may be relative to a source root."
)
_OPTION_OPTION = typer.Option(
    None, "--option", "-o", help="Source option as key=value. Repeatable."
)
_LANGUAGE_OPTION = typer.Option("", "--language", help="Target language, recorded in the config.")


def parse_options(pairs: Optional[list[str]]) -> dict[str, str]:
    """Turn ``["key=value", ...]`` into a dict. Later keys win.

    Raises:
        ConfigError: If an entry has no ``=`` or an empty key.
    """
    from specmodel.exceptions import ConfigError

    options: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigError(f"invalid option {pair!r}, expected key=value")
        options[key] = value.strip()
    return options


def _build_model(
    specification_format: str,
    source: str,
    service_config: str,
    options: Optional[list[str]],
    language: str,
) -> Any:  # noqa: ANN401
    """Run the pipeline, turning package errors into a clean exit."""
    from specmodel.exceptions import SpecmodelError
    from specmodel.models import Config, GeneralConfig
    from specmodel.output import debug, error
    from specmodel.parser import create_model

    try:
        config = Config(
            general=GeneralConfig(
                language=language,
                specification_format=specification_format,
                specification_source=source,
                service_config=service_config,
            ),
            source=parse_options(options),
        )
        debug(f"Building model from {source or '<none>'} ({specification_format})")
        return create_model(config)
    except SpecmodelError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _model_rows(model: Any) -> list[list[str]]:  # noqa: ANN401
    from specmodel.api.xref import walk_enums, walk_messages

    rows: list[list[str]] = []
    for service in model.services:
        rows.append(["service", service.id, service.name])
        for method in service.methods:
            rows.append(["method", method.id, method.name])
    for message in walk_messages(model.messages):
        rows.append(["map" if message.is_map else "message", message.id, message.name])
    for enum in walk_enums(model):
        rows.append(["enum", enum.id, enum.name])
    return rows


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command("validate")
def validate_command(
    specification_format: str = _FORMAT_OPTION,
    source: str = _SOURCE_OPTION,
    service_config: str = _SERVICE_CONFIG_OPTION,
    option: Optional[list[str]] = _OPTION_OPTION,
    language: str = _LANGUAGE_OPTION,
) -> None:
    """Build the model and run every pass over it.

    Example::

        specmodel validate -f disco -s compute.v1.json -o name-override=compute
    """
    from specmodel.output import info, success

    model = _build_model(specification_format, source, service_config, option, language)
    if model is None:
        info("Nothing to validate for format 'none'.")
        return
    success(
        f"{model.package_name or model.name}: {len(model.services)} services, "
        f"{len(model.messages)} messages, {len(model.enums)} enums"
    )


@app.command("inspect")
def inspect_command(
    specification_format: str = _FORMAT_OPTION,
    source: str = _SOURCE_OPTION,
    service_config: str = _SERVICE_CONFIG_OPTION,
    option: Optional[list[str]] = _OPTION_OPTION,
    language: str = _LANGUAGE_OPTION,
) -> None:
    """List every service, method, message and enum in the model.

    Example::

        specmodel --plain inspect -f openapi -s petstore.json
    """
    from specmodel.output import get_output, info

    model = _build_model(specification_format, source, service_config, option, language)
    if model is None:
        info("No model for format 'none'.")
        return
    get_output().print_table(
        ["Kind", "ID", "Name"], _model_rows(model), title=f"{model.title or model.name} -- Elements"
    )


@app.command("summary")
def summary_command(
    specification_format: str = _FORMAT_OPTION,
    source: str = _SOURCE_OPTION,
    service_config: str = _SERVICE_CONFIG_OPTION,
    option: Optional[list[str]] = _OPTION_OPTION,
    language: str = _LANGUAGE_OPTION,
) -> None:
    """Print the model name, package, title and element counts."""
    from specmodel.output import format_response, info

    model = _build_model(specification_format, source, service_config, option, language)
    if model is None:
        info("No model for format 'none'.")
        return
    format_response(
        {
            "name": model.name,
            "packageName": model.package_name,
            "title": model.title,
            "description": model.description,
            "services": [s.id for s in model.services],
            "messages": len(model.messages),
            "enums": len(model.enums),
            "hasDeprecatedEntities": model.has_deprecated_entities(),
        }
    )


def _setup_signal_handlers() -> None:
    """Exit with status 130 on Ctrl-C."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """Console-script entry point.

    :class:`~specmodel.exceptions.SpecmodelError` escaping a command exits
    with the error's ``exit_code``; anything else exits with
    :data:`~specmodel.exit_codes.EXIT_GENERIC_FAILURE`.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from specmodel.exceptions import SpecmodelError
        from specmodel.output import error

        if isinstance(exc, SpecmodelError):
            error(str(exc))
            sys.exit(exc.exit_code)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)

"""specmodel -- Build a cross-referenced API model from Discovery, OpenAPI and Protobuf sources.

This package ingests an API surface description, translates it into one
canonical graph of services, methods, messages, enums and fields, resolves
every ID-based reference in that graph, and validates it so that template
renderers can walk the result without re-checking anything.

Typical workflow::

    from specmodel.models import Config, GeneralConfig
    from specmodel.parser import create_model

    model = create_model(
        Config(
            general=GeneralConfig(
                specification_format="disco",
                specification_source="compute.v1.json",
            )
        )
    )

Modules:
    api: The API model and the cross-reference, skip, patch and validation passes.
    parser: Discovery, OpenAPI and Protobuf parsers plus the pipeline entry point.
    models: Pydantic models for configuration and service-config documents.
    config: Source-root helpers used to locate input files.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes used by the CLI.
    output: stdout/stderr formatting with Rich support.
    app: Typer application and CLI entry point.
"""

__version__ = "0.3.0"

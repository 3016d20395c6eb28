"""CLI entry point for imei-proxy."""

from __future__ import annotations

import logging

import click
from aiohttp import web

from . import __version__
from .config import ExtractionMode, ImeiProxyConfig, load_config
from .exceptions import ConfigError

logger = logging.getLogger("imei-proxy")


def _apply_overrides(
    config: ImeiProxyConfig,
    host: str | None,
    port: int | None,
    mode: str | None,
) -> ImeiProxyConfig:
    """Return a copy of *config* with command-line overrides applied."""
    server_updates: dict = {}
    if host is not None:
        server_updates["host"] = host
    if port is not None:
        server_updates["port"] = port

    updates: dict = {}
    if server_updates:
        updates["server"] = config.server.model_copy(update=server_updates)
    if mode is not None:
        updates["extraction"] = config.extraction.model_copy(
            update={"mode": ExtractionMode(mode)}
        )
    return config.model_copy(update=updates) if updates else config


@click.command()
@click.version_option(version=__version__, prog_name="imei-proxy")
@click.option("--config", "config_path", default=None, help="YAML config file path")
@click.option("--host", default=None, help="Override listen host")
@click.option("--port", default=None, type=int, help="Override HTTP port")
@click.option(
    "--mode",
    default=None,
    type=click.Choice([m.value for m in ExtractionMode]),
    help="Override extraction mode",
)
@click.option(
    "--log-level",
    default="INFO",
    envvar="LOG_LEVEL",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
)
def main(
    config_path: str | None,
    host: str | None,
    port: int | None,
    mode: str | None,
    log_level: str,
) -> None:
    """Serve the IMEI scanning proxy."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        config = _apply_overrides(load_config(config_path), host, port, mode)
    except ConfigError as e:
        raise click.ClickException(str(e))

    if not config.provider.api_key:
        click.echo(
            "Warning: GEMINI_API_KEY is not set; scan requests will fail with 500.",
            err=True,
        )

    from .api import create_app

    app = create_app(config)
    logger.info(
        "Backend live on port %s (mode=%s, model=%s)",
        config.server.port,
        config.extraction.mode.value,
        config.provider.model,
    )
    web.run_app(
        app,
        host=config.server.host,
        port=config.server.port,
        print=lambda x: logger.info(x),
    )


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
tiered-dispatch - command line tools for operating the cache and storage tiers.

Derive the key an operation call is stored under, inspect what each tier
holds for a key, and evict cache entries.
"""

import json
import sys

import click

from .config import DEFAULT_MODEL_NAME, Config, load_config
from .exceptions import ConfigurationError, DispatchError, MalformedEnvelopeError
from .factory import create_cache_store, create_document_store
from .logging import configure_logging
from .utils.envelope import unpack
from .utils.key_codec import KeyCodec


def _parse_argument(raw: str):
    """Interpret a CLI argument as JSON, falling back to the raw string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _describe(stored) -> dict:
    try:
        meta, payload = unpack(stored)
    except MalformedEnvelopeError as e:
        return {"found": True, "malformed": True, "error": e.message}
    return {
        "found": True,
        "updated_at": meta.updated_at.isoformat(),
        "payload_type": type(payload).__name__,
    }


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(
        ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False
    ),
    default=None,
    help="Override TIERED_LOG_LEVEL",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """
    tiered-dispatch: cache/storage/origin dispatcher tooling

    \b
    Examples:
      tiered-dispatch key users listUsers
      tiered-dispatch key users getUser 42 '{"fields": ["name"]}'
      tiered-dispatch inspect users-getUser-42 --model users
      tiered-dispatch evict users-getUser-42
    """
    try:
        config = load_config()
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e

    if log_level:
        config = config.model_copy(update={"log_level": log_level.upper()})
    configure_logging(config)
    ctx.obj = config


@cli.command("key")
@click.argument("model")
@click.argument("operation")
@click.argument("arguments", nargs=-1)
@click.option(
    "--strategy",
    type=click.Choice(["legacy", "canonical"]),
    default=None,
    help="Key strategy (default: TIERED_KEY_STRATEGY)",
)
@click.pass_obj
def key_command(
    config: Config, model: str, operation: str, arguments: tuple[str, ...], strategy: str | None
) -> None:
    """Print the cache key for MODEL OPERATION [ARGUMENTS...] (JSON arguments)."""
    codec = KeyCodec(strategy=strategy or config.key_strategy)
    try:
        key = codec.derive_key(model, operation, [_parse_argument(a) for a in arguments])
    except DispatchError as e:
        raise click.ClickException(e.message) from e
    click.echo(key)


@cli.command("inspect")
@click.argument("key")
@click.option("--model", default=DEFAULT_MODEL_NAME, help="Model (document type) to look in")
@click.option("--index", "storage_index", default=None, help="Storage index (default: config)")
@click.pass_obj
def inspect_command(config: Config, key: str, model: str, storage_index: str | None) -> None:
    """Show what the cache and storage tiers hold for KEY."""
    report = {}

    cache = create_cache_store(config)
    stored = cache.get(key)
    report["cache"] = {"found": False} if stored is None else _describe(stored)

    try:
        document_store = create_document_store(config)
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e

    if document_store is None:
        report["storage"] = {"enabled": False}
    else:
        document = document_store.get_by_id(storage_index or config.storage_index, model, key)
        report["storage"] = {"found": False} if document is None else _describe(document)

    click.echo(json.dumps(report, indent=2))


@cli.command("evict")
@click.argument("key")
@click.pass_obj
def evict_command(config: Config, key: str) -> None:
    """Delete KEY from the cache tier."""
    cache = create_cache_store(config)
    if not cache.delete(key):
        raise click.ClickException(f"Could not evict {key}")
    click.echo(f"Evicted {key}")


def main(args: list[str] | None = None) -> int:
    """
    Main entry point for testing and programmatic usage.

    Args:
        args: Command line arguments

    Returns:
        Exit code
    """
    try:
        if args is None:
            cli()
        else:
            cli(args=args, standalone_mode=False)
        return 0
    except SystemExit as e:
        return e.code if e.code is not None else 0
    except click.ClickException as e:
        e.show()
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())

"""
Decorators for CLI commands.

This module provides decorators for error handling and context passing.
"""

import functools
from collections.abc import Callable

import click

from profile_bridge.cli.context import SyncCliContext
from profile_bridge.client.exceptions import (
    APIError,
    ArchiveError,
    AuthenticationError,
    ConfigurationError,
    NetworkError,
)
from profile_bridge.utils.logging import get_logger

logger = get_logger(__name__)


def pass_context(f: Callable) -> Callable:
    """
    Decorator to pass SyncCliContext to command function.

    Usage:
        @click.command()
        @pass_context
        def my_command(ctx: SyncCliContext):
            print(ctx.config)
    """

    @click.pass_context
    @functools.wraps(f)
    def wrapper(click_ctx: click.Context, *args, **kwargs):
        sync_ctx: SyncCliContext = click_ctx.obj
        return f(sync_ctx, *args, **kwargs)

    return wrapper


def handle_errors(f: Callable) -> Callable:
    """
    Decorator to handle common errors in CLI commands.

    Exit codes:
        0: Success
        1: A phase failed, or an unexpected error
        2: Configuration or archive error
        3: Authentication error
        4: API or network error
    """

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except click.exceptions.Exit:
            raise

        except click.exceptions.Abort:
            raise

        except ArchiveError as e:
            logger.error("archive_error", error=str(e))
            click.echo(f"Archive Error: {e}", err=True)
            click.echo(
                "\nPlease check that the backup was fully extracted and its files are intact.",
                err=True,
            )
            raise click.exceptions.Exit(2) from e

        except ConfigurationError as e:
            logger.error("configuration_error", error=str(e))
            click.echo(f"Configuration Error: {e}", err=True)
            click.echo(
                "\nPlease check your configuration file and ensure all required fields are set.",
                err=True,
            )
            raise click.exceptions.Exit(2) from e

        except AuthenticationError as e:
            logger.error("authentication_error", error=str(e))
            click.echo(f"Authentication Error: {e}", err=True)
            click.echo("\nPlease verify the account tokens in the configuration.", err=True)
            raise click.exceptions.Exit(3) from e

        except (APIError, NetworkError) as e:
            logger.error("api_error", error=str(e))
            click.echo(f"API Error: {e}", err=True)
            if getattr(e, "status_code", None):
                click.echo(f"\nResponse status: {e.status_code}", err=True)
            raise click.exceptions.Exit(4) from e

        except Exception as e:
            logger.error("unexpected_error", error=str(e), exc_info=True)
            click.echo(f"Unexpected Error: {e}", err=True)
            click.echo(
                "\nAn unexpected error occurred. Please check the logs for details.",
                err=True,
            )
            raise click.exceptions.Exit(1) from e

    return wrapper

"""CLI entry point for salio."""

from __future__ import annotations

import logging
import os
import sys

import fire
import paramiko

from salio.cli.chooser import InvalidSelectionError
from salio.logging import StreamFormatter, StreamRoutingFilter
from salio.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
)
from salio.services.exceptions import TunnelError
from salio.utils import log_and_print_error

QUIET_LOGGERS = ["botocore", "boto3", "urllib3", "paramiko"]


def get_salio_class() -> type:
    """Get Salio class on-demand to avoid circular imports.

    Returns
    -------
    type
        Salio class
    """
    from salio.__main__ import Salio

    return Salio


def configure_logging(level: int = logging.INFO) -> None:
    """Send INFO records to stdout and warnings and errors to stderr.

    Parameters
    ----------
    level : int
        Root logger level (default: INFO)
    """
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(StreamFormatter("%(message)s"))
    stdout_handler.addFilter(StreamRoutingFilter("stdout"))

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(StreamFormatter("%(message)s"))
    stderr_handler.addFilter(StreamRoutingFilter("stderr"))

    logging.basicConfig(
        level=level,
        handlers=[stdout_handler, stderr_handler],
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def handle_selection_error(error: InvalidSelectionError, debug_mode: bool) -> None:
    """Handle an invalid candidate selection.

    Raises
    ------
    InvalidSelectionError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(str(error))
    sys.exit(1)


def handle_credentials_error(error: ProviderCredentialsError, debug_mode: bool) -> None:
    """Handle provider credentials error.

    Raises
    ------
    ProviderCredentialsError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(f"Error fetching ec2 instances: {error}\n", file=sys.stderr)
    print("Fix it:", file=sys.stderr)
    print("  aws sso login           # If using AWS SSO", file=sys.stderr)
    print("  aws configure           # Re-configure credentials", file=sys.stderr)
    print("  salio -p <profile> ...  # Use another profile", file=sys.stderr)
    sys.exit(1)


def handle_api_error(error: ProviderAPIError | ProviderConnectionError, debug_mode: bool) -> None:
    """Handle provider API or connection error.

    Raises
    ------
    ProviderAPIError, ProviderConnectionError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    if getattr(error, "error_code", None) == "UnauthorizedOperation":
        print("Insufficient IAM permissions\n", file=sys.stderr)
        print("salio needs ec2:DescribeInstances in this region.", file=sys.stderr)
    else:
        print(f"Error fetching ec2 instances: {error}", file=sys.stderr)

    sys.exit(1)


def handle_tunnel_error(error: Exception, debug_mode: bool) -> None:
    """Handle agent, dial, auth or session error by printing it verbatim.

    Raises
    ------
    TunnelError, OSError, paramiko.SSHException
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    log_and_print_error("%s", error)
    sys.exit(1)


def handle_value_error(error: ValueError, debug_mode: bool) -> None:
    """Handle configuration error.

    Raises
    ------
    ValueError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(f"Configuration error: {error}", file=sys.stderr)
    sys.exit(2)


def handle_runtime_error(error: RuntimeError, debug_mode: bool) -> None:
    """Handle unexpected runtime error, such as an unreadable config file.

    Raises
    ------
    RuntimeError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(f"Unexpected error: {error}", file=sys.stderr)
    sys.exit(1)


def main() -> None:
    """Entry point for Fire CLI with graceful error handling.

    Notes
    -----
    Fire maps positional arguments to the search terms of ``Salio.jump`` and
    ``--flag value`` pairs (or ``-f value`` for unambiguous first letters) to
    its keyword arguments.
    """
    configure_logging()

    debug_mode = os.environ.get("SALIO_DEBUG") == "1"

    try:
        fire.Fire(get_salio_class()().jump, name="salio")
    except InvalidSelectionError as e:
        handle_selection_error(e, debug_mode)
    except ProviderCredentialsError as e:
        handle_credentials_error(e, debug_mode)
    except (ProviderAPIError, ProviderConnectionError) as e:
        handle_api_error(e, debug_mode)
    except (TunnelError, OSError, paramiko.SSHException) as e:
        handle_tunnel_error(e, debug_mode)
    except ValueError as e:
        handle_value_error(e, debug_mode)
    except RuntimeError as e:
        handle_runtime_error(e, debug_mode)
    except KeyboardInterrupt:
        sys.exit(130)

# Main Entry Point - Custody Gateway Server
#
# Runs the HTTP API under uvicorn. Configuration comes from the environment
# (or a .env file); startup aborts when the master key or the database
# location is missing.

import sys
import argparse

from . import __version__
from .exceptions import ConfigurationError, PersistenceError
from .vault.encryption import generate_master_key


def main(argv=None):
    """
    Main entry point for the custody gateway.
    """
    parser = argparse.ArgumentParser(
        description="Credential custody gateway - encrypted provider credentials with audited calls",
    )

    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: CUSTODY_HOST or 127.0.0.1)"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (default: PORT or 3000)"
    )

    parser.add_argument(
        "--generate-key",
        action="store_true",
        help="Print a new random master key for CUSTODY_SECRET_KEY and exit"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Custody Gateway v{__version__}"
    )

    args = parser.parse_args(argv)

    if args.generate_key:
        print(generate_master_key())
        return 0

    from .api.main import start_api_server

    try:
        start_api_server(host=args.host, port=args.port)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except PersistenceError as e:
        print(f"Storage error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nShutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())

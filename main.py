#!/usr/bin/env python3
"""
Dashboard auth server - single fixed-identity login with signed session cookies.
"""

import argparse
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

#
# NOTE: Keep portal imports lazy (inside functions) so `--help` works without
# the server dependencies installed.
#


def issue_token() -> None:
    """Print a session token for the configured demo identity."""
    from portal.auth.service import get_auth_service

    service = get_auth_service()
    identity = service.directory.identity_for(service.config.demo_user_id)
    if identity is None:
        print("Configured demo identity not found", file=sys.stderr)
        sys.exit(1)
    print(service.codec.issue(identity))


def verify_token(token: str) -> None:
    """Print the claims of a token, or exit non-zero when it does not verify."""
    import json
    from dataclasses import asdict

    from portal.auth.errors import VerificationError
    from portal.auth.service import get_auth_service

    try:
        claims = get_auth_service().codec.verify(token.strip())
    except VerificationError:
        print("Token is invalid or expired", file=sys.stderr)
        sys.exit(1)
    data = asdict(claims)
    data["role"] = claims.role.value
    print(json.dumps(data, indent=2, sort_keys=True))


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Dashboard session authentication",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the auth server
  python main.py --serve --port 8080

  # Print a session token for the demo identity
  python main.py --issue-token

  # Check a token (e.g. copied from the app_session_id cookie)
  python main.py --verify-token <token>
        """,
    )

    parser.add_argument("--serve", action="store_true", help="Run the long-running HTTP auth server")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Server listen port (default: 8080)")
    parser.add_argument(
        "--issue-token", action="store_true", help="Print a session token for the configured demo identity"
    )
    parser.add_argument("--verify-token", metavar="TOKEN", help="Verify a session token and print its claims")

    args = parser.parse_args()

    try:
        if args.serve:
            from portal.api.server import run as run_server

            run_server(host=args.host, port=args.port)
            return

        if args.issue_token:
            issue_token()
            return

        if args.verify_token:
            verify_token(args.verify_token)
            return

        # No arguments provided
        parser.print_help()

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()

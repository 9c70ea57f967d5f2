"""
Command-line interface for OCI Signing SDK
Signs OCI API requests and optionally sends them
"""

import argparse
import sys
import json
import logging
from typing import List, Optional, Tuple

from . import __version__
from .client import OciClient
from .config import ClientSettings, load_profile, DEFAULT_PROFILE
from .config.settings import TRANSPORT_CHOICES, LOG_LEVELS
from .exceptions import OciSdkError, ConfigError, ErrorCodes
from .signing import RequestSigner, RequestDescriptor, HttpMethod, SystemClock

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog='oci-sign',
        description='Sign and send OCI REST API requests'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'OCI Signing SDK {__version__}'
    )

    # Create subparsers for different commands
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    sign_parser = subparsers.add_parser('sign', help='Print the signed headers for a request without sending it')
    add_request_arguments(sign_parser)

    call_parser = subparsers.add_parser('call', help='Sign and send a request')
    add_request_arguments(call_parser)
    call_parser.add_argument(
        '--capture',
        action='append',
        default=[],
        metavar='NAME',
        help='Response header to capture (case-sensitive, repeatable)'
    )
    call_parser.add_argument('--transport', choices=TRANSPORT_CHOICES, help='Transport to use')
    call_parser.add_argument('--timeout', type=float, help='Timeout in seconds')
    call_parser.add_argument('--json', action='store_true', help='Print the response as JSON')

    return parser


def add_request_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the options describing a request and the signing profile."""
    parser.add_argument('--config', help='OCI config file (default: ~/.oci/config)')
    parser.add_argument('--profile', default=DEFAULT_PROFILE, help='Profile in the config file')
    parser.add_argument('--settings', help='JSON client settings file')
    parser.add_argument('--host', help='API host (default: <service>.<region>.oraclecloud.com)')
    parser.add_argument('--service', help='Service prefix used to derive the host from the profile region')
    parser.add_argument('--path', required=True, help='Request path, starting with /')
    parser.add_argument(
        '--method',
        default='GET',
        type=str.upper,
        choices=[m.value for m in HttpMethod],
        help='HTTP method (default: GET)'
    )
    body_group = parser.add_mutually_exclusive_group()
    body_group.add_argument('--body', help='Request body')
    body_group.add_argument('--body-file', help='File containing the request body')
    parser.add_argument('--content-type', help='Content type (default: application/json)')
    parser.add_argument(
        '--header',
        action='append',
        default=[],
        metavar='NAME:VALUE',
        help='Extra request header (repeatable)'
    )
    parser.add_argument('--ca-cert', help='Root CA certificate file for the endpoint')
    parser.add_argument('--log-level', choices=LOG_LEVELS, help='Logging level')


def parse_header_option(value: str) -> Tuple[str, str]:
    """Split a NAME:VALUE header option."""
    name, sep, header_value = value.partition(':')
    if not sep or not name.strip():
        raise ConfigError(f"Invalid header option {value!r}, expected NAME:VALUE", ErrorCodes.INVALID_HEADER)
    return name.strip(), header_value.strip()


def load_settings(args) -> ClientSettings:
    """Load settings from file or environment and apply command-line overrides."""
    settings = ClientSettings.from_file(args.settings) if args.settings else ClientSettings.from_env()
    overrides = {}
    if getattr(args, 'transport', None):
        overrides['transport'] = args.transport
    if getattr(args, 'timeout', None):
        overrides['timeout'] = args.timeout
        overrides['read_timeout'] = args.timeout
    if args.log_level:
        overrides['log_level'] = args.log_level
    if overrides:
        settings = ClientSettings.from_dict({**settings.to_dict(), **overrides})
    return settings


def build_request(args, profile) -> RequestDescriptor:
    """Build the request descriptor from parsed arguments."""
    host = args.host
    if not host:
        if not args.service:
            raise ConfigError("Either --host or --service is required", ErrorCodes.INVALID_HOST)
        host = profile.endpoint(args.service)

    body = args.body
    if args.body_file:
        try:
            with open(args.body_file, 'rb') as f:
                body = f.read()
        except OSError as e:
            raise ConfigError(f"Failed to read body file: {e}", ErrorCodes.CONFIG_FILE_ERROR) from e

    trust_anchor = None
    if args.ca_cert:
        try:
            with open(args.ca_cert, 'r', encoding='utf-8') as f:
                trust_anchor = f.read()
        except OSError as e:
            raise ConfigError(f"Failed to read CA certificate: {e}", ErrorCodes.CONFIG_FILE_ERROR) from e

    return RequestDescriptor(
        host=host,
        path=args.path,
        method=args.method,
        body=body,
        content_type=args.content_type,
        headers=[parse_header_option(h) for h in args.header],
        trust_anchor=trust_anchor
    )


def handle_sign_command(args, settings: ClientSettings) -> int:
    """Handle printing the signed headers of a request."""
    profile = load_profile(args.config, args.profile)
    request = build_request(args, profile)
    signer = RequestSigner(
        profile.identity,
        clock=SystemClock(min_valid_year=settings.min_valid_year),
        clock_wait_attempts=settings.clock_wait_attempts,
        clock_wait_delay=settings.clock_wait_delay,
        log_signing_string=settings.log_signing_string
    )
    result = signer.sign_request(request)

    print(f"date: {result.date}")
    if result.content_sha256 is not None:
        print(f"x-content-sha256: {result.content_sha256}")
        print(f"content-length: {result.content_length}")
        print(f"content-type: {request.content_type}")
    print(f"Authorization: {result.authorization}")
    return 0


def handle_call_command(args, settings: ClientSettings) -> int:
    """Handle signing and sending a request."""
    profile = load_profile(args.config, args.profile)
    request = build_request(args, profile)

    with OciClient(profile.identity, settings=settings) as client:
        response = client.sign_and_send(request, args.capture)

    if args.json:
        print(json.dumps({
            'status_code': response.status_code,
            'opc_request_id': response.opc_request_id,
            'headers': response.headers,
            'body': response.body,
        }, indent=2))
    else:
        print(f"Status: {response.status_code}")
        if response.opc_request_id:
            print(f"opc-request-id: {response.opc_request_id}")
        for name, value in response.headers.items():
            print(f"{name}: {value}")
        print()
        print(response.body)

    return 0 if response.ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI

    Args:
        argv: Command line arguments (None to use sys.argv)

    Returns:
        int: Exit code (0 for success, 1 for a non-2xx response, 2 for local errors)
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    try:
        settings = load_settings(args)
        logging.basicConfig(
            level=getattr(logging, settings.log_level),
            format='%(asctime)s %(levelname)s %(name)s: %(message)s'
        )

        if args.command == 'sign':
            return handle_sign_command(args, settings)
        elif args.command == 'call':
            return handle_call_command(args, settings)

        parser.print_help()
        return 2

    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130
    except OciSdkError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == '__main__':
    sys.exit(main())

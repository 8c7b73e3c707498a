"""
Mocker CLI

Command-line interface for the Mocker mock server.

Commands:
    serve       - Start the mock HTTP server
    validate    - Load a configuration file and print its routes

Examples:
    # Start mock server from ./mocker.yaml
    mocker serve

    # Start on a different port, without hot reload
    mocker serve routes.yaml --port 9090 --no-watch

    # Check a configuration file
    mocker validate routes.yaml
"""

import argparse
import logging
import sys

import yaml

from .mock import ConfigError, MockConfig, MockServer, dump_config, load_config
from .mock.config import DEFAULT_CONFIG_FILE
from .mock.watcher import DEFAULT_POLL_INTERVAL

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: str):
    """Configure root logging for the CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT
    )


def cmd_serve(args):
    """
    Start mock HTTP server serving configured routes.

    Args:
        args: Parsed command-line arguments
    """
    print(f"🎭 Mocker")

    config = MockConfig(
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        watch=not args.no_watch,
        poll_interval=args.poll_interval
    )

    # A broken configuration at startup is fatal
    try:
        server = MockServer(args.config, config=config)
    except ConfigError as e:
        print(f"❌ Failed to load configuration: {e}")
        sys.exit(1)

    # Start server (blocking)
    try:
        server.start()
    except KeyboardInterrupt:
        print("\n\n👋 Mock server stopped")


def cmd_validate(args):
    """
    Validate a configuration file and print the loaded routes.

    Args:
        args: Parsed command-line arguments
    """
    try:
        table = load_config(args.config)
    except ConfigError as e:
        print(f"❌ Invalid configuration: {e}")
        sys.exit(1)

    print(f"✓ {args.config}: {len(table)} routes, {len(table.patterns)} URL patterns, port {table.port}")
    if args.verbose:
        print()
        print(yaml.safe_dump(dump_config(table), default_flow_style=False, sort_keys=False))


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='mocker',
        description="Mocker - configuration-driven HTTP mock server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start mock server from ./mocker.yaml
  %(prog)s serve

  # Custom file and port
  %(prog)s serve routes.yaml --port 9090

  # Validate configuration
  %(prog)s validate routes.yaml --verbose
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Serve command
    serve_parser = subparsers.add_parser('serve', help='Start mock HTTP server')
    serve_parser.add_argument('config', nargs='?', default=DEFAULT_CONFIG_FILE,
                              help=f'YAML route configuration (default: {DEFAULT_CONFIG_FILE})')
    serve_parser.add_argument('--host', default='127.0.0.1', help='Host to bind (default: 127.0.0.1)')
    serve_parser.add_argument('-p', '--port', type=int, help='Port to bind (default: port from config, then 8080)')
    serve_parser.add_argument('--log-level', default='info', choices=['debug', 'info', 'warning', 'error'],
                              help='Log level (default: info)')
    serve_parser.add_argument('--poll-interval', type=float, default=DEFAULT_POLL_INTERVAL,
                              help=f'Seconds between configuration checks (default: {DEFAULT_POLL_INTERVAL})')
    serve_parser.add_argument('--no-watch', action='store_true', help='Disable configuration hot reload')

    # Validate command
    validate_parser = subparsers.add_parser('validate', help='Validate a route configuration')
    validate_parser.add_argument('config', nargs='?', default=DEFAULT_CONFIG_FILE,
                                 help=f'YAML route configuration (default: {DEFAULT_CONFIG_FILE})')
    validate_parser.add_argument('-v', '--verbose', action='store_true', help='Print the loaded routes')

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()

    # Parse arguments
    args = parser.parse_args(argv)

    setup_logging(getattr(args, 'log_level', 'warning'))

    # Dispatch to command handler
    if args.command == 'serve':
        cmd_serve(args)
    elif args.command == 'validate':
        cmd_validate(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()

#!/usr/bin/env python
"""
Command-line interface for LeafDocs
"""

import argparse
import sys

from leafdocs.version_info import __version__, __build_timestamp__, __build_type__


def print_version():
    """Print version information."""
    print(f"LeafDocs v{__version__}")
    print(f"Build: {__build_timestamp__}")
    print(f"Build Type: {__build_type__}")


def start_server(args):
    """Start the Flask server."""
    from leafdocs.app import create_app
    from leafdocs.core.config import load_config

    config = load_config(
        config_file=args.config,
        overrides={'mode': args.mode, 'content_root': args.content_root},
    )
    app = create_app(config)

    host = args.host
    port = args.port or 8000

    print(f"Starting LeafDocs v{__version__} ({config['mode']} mode)")
    print(f"Content: {config['content_root']}")
    print(f"Server: http://{host}:{port}")
    if config['mode'] == 'development':
        print(f"Editor: http://{host}:{port}/admin/editor")
    print("Press Ctrl+C to stop")
    print()

    app.run(host=host, port=port, debug=args.debug)


def build_parser():
    parser = argparse.ArgumentParser(
        description=f'LeafDocs v{__version__}',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  leafdocs --version                     Show version information
  leafdocs start                         Serve ./pages read-only on localhost:8000
  leafdocs start --mode development      Serve with the editor enabled
  leafdocs start --content-root docs     Serve another content folder
        """
    )

    parser.add_argument(
        '--version', '-v',
        action='store_true',
        help='Show version information'
    )
    parser.add_argument(
        '--host',
        type=str,
        default='localhost',
        help='Host to bind to (default: localhost)'
    )
    parser.add_argument(
        '--port', '-p',
        type=int,
        default=8000,
        help='Port to bind to (default: 8000)'
    )
    parser.add_argument(
        '--debug', '-d',
        action='store_true',
        help='Run the Flask debugger and reloader'
    )
    parser.add_argument(
        '--mode',
        choices=['development', 'production'],
        default=None,
        help='Runtime mode; the editor is only available in development'
    )
    parser.add_argument(
        '--content-root',
        type=str,
        default=None,
        help='Folder holding the markdown content (default: ./pages)'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to config.json (default: ./config.json)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')
    subparsers.add_parser('start', help='Start the documentation server')
    return parser


def main(argv=None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.version:
        print_version()
        return 0

    if args.command == 'start' or args.command is None:
        try:
            start_server(args)
            return 0
        except KeyboardInterrupt:
            print("\nServer stopped.")
            return 0
        except ValueError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return 2
        except Exception as e:
            if args.debug:
                import traceback
                traceback.print_exc()
            print(f"Error starting server: {e}", file=sys.stderr)
            return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())

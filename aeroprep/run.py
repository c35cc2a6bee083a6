#!/usr/bin/env python3
"""
AeroPrep launcher

Usage:
    aeroprep [--port PORT] [--host HOST] [--debug]

Examples:
    aeroprep
    aeroprep --port 8080
    aeroprep --host 0.0.0.0 --port 5000 --debug
"""
import argparse
import sys

from aeroprep.app import create_app
from aeroprep.core.config import Config


def main(argv=None):
    """Start the development server"""
    config_class = Config.from_env()
    parser = argparse.ArgumentParser(description='AeroPrep exam preparation API')
    parser.add_argument('--host', default=config_class.HOST, help=f'host address (default: {config_class.HOST})')
    parser.add_argument('--port', type=int, default=config_class.PORT, help=f'port (default: {config_class.PORT})')
    parser.add_argument('--debug', action='store_true', help='run in debug mode')
    args = parser.parse_args(argv)

    if args.debug:
        config_class.DEBUG = True

    app = create_app(config_class)
    app.logger.info(f"AeroPrep listening on http://{args.host}:{args.port} (debug={args.debug})")

    try:
        app.run(
            host=args.host,
            port=args.port,
            debug=args.debug,
            use_reloader=args.debug
        )
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == '__main__':
    main()

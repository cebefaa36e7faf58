"""
Run the admin server directly.

Usage:
    python -m quillpost.admin
    python -m quillpost.admin --port 8000
"""

import argparse

from dotenv import load_dotenv

from ..logging_config import setup_logging
from .server import run_server


def main():
    load_dotenv()
    setup_logging()

    parser = argparse.ArgumentParser(description="Quillpost Admin Server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=5050, help="Port (default: 5050)")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    run_server(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()

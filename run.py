"""
Run script for starting the call bridge server with low-latency settings.

This script configures and starts the FastAPI server with WebSocket settings
suited to real-time audio streaming between Twilio and OpenAI.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import logging
import os
import sys
from pathlib import Path

import dotenv
import uvicorn

from callbridge.config.constants import LOGGER_NAME
from callbridge.config.logging_config import configure_logging

env_path = Path(__file__).parent / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)

logger = logging.getLogger(LOGGER_NAME)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Start the call bridge server")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "5050")),
        help="Port to run the server on (default: 5050 or PORT env var)",
    )
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind the server to (default: 0.0.0.0 or HOST env var)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for starting the server."""
    args = parse_args(argv)
    # The app reads its log level from the environment when uvicorn imports it
    os.environ["LOG_LEVEL"] = args.log_level
    configure_logging(args.log_level)

    if not os.getenv("OPENAI_API_KEY"):
        logger.error("OPENAI_API_KEY environment variable not set")
        print("Error: OPENAI_API_KEY environment variable is required")
        sys.exit(1)

    logger.info(f"Starting server on http://{args.host}:{args.port}")
    logger.info(f"Log level: {args.log_level}")

    uvicorn.run(
        "callbridge.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        http="h11",
        # Session logging already covers each call
        access_log=False,
        reload=os.getenv("ENV", "production").lower() == "development",
    )


if __name__ == "__main__":
    main()

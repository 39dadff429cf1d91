"""Run the HTTP service with uvicorn."""

from __future__ import annotations

import argparse
import os

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the inboxsync webhook service.")
    parser.add_argument(
        "--host",
        type=str,
        default=os.environ.get("HOST", "127.0.0.1"),
        help="Host to bind the server to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PORT", "4000")),
        help="Port to bind the server to (default: 4000)",
    )
    args = parser.parse_args()

    # Single worker: simulated status timers live in-process
    uvicorn.run("inboxsync.api.app:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()

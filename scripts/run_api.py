from __future__ import annotations

import argparse

import uvicorn

from passroute.settings import get_config


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the passroute routing API.")
    parser.add_argument("--host", default=None, help="Bind address (default: config api.host).")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: config api.port).")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = get_config()
    uvicorn.run(
        "passroute.api.app:app",
        host=args.host or config.api.host,
        port=int(args.port or config.api.port),
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()

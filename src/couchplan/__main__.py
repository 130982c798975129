from __future__ import annotations

import argparse
import logging
import uvicorn

from couchplan.app import app
from couchplan.logging import configure_logging


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the CouchPlan API server")
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Interface to bind (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=5055,
        help="Port to listen on (default: 5055)",
    )
    args = parser.parse_args()

    configure_logging()
    logger = logging.getLogger(__name__)
    logger.info("Starting CouchPlan on %s:%s", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()

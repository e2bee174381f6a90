#!/usr/bin/env python3
"""
Run the DataFlow API under uvicorn.
"""

import argparse
import sys
from pathlib import Path

import uvicorn

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dataflow.core import config


def main():
    parser = argparse.ArgumentParser(
        description="DataFlow entity service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment variables:
- DATAFLOW_ENV=development|production
- DB_PATH=./data/dataflow.db (database location)
- HOST / PORT (bind address, default 0.0.0.0:5000)
- LOG_LEVEL, LOG_REQUESTS (logging)
        """
    )
    parser.add_argument("--host", default=config.SERVER_HOST, help="Interface to bind")
    parser.add_argument("--port", "-p", type=int, default=config.SERVER_PORT, help="Port to listen on")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")

    args = parser.parse_args()

    issues = config.validate_config()
    if issues:
        for issue in issues:
            print(f"Configuration error: {issue}", file=sys.stderr)
        sys.exit(1)

    uvicorn.run(
        "dataflow.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()

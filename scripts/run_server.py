#!/usr/bin/env python3
"""
Run the vector database HTTP API with uvicorn.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn

from memvector.core.config import validate_config


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Serve the memvector API')
    parser.add_argument('--port', type=int, default=8000,
                        help='Port to serve on (default: 8000)')
    parser.add_argument('--host', default='127.0.0.1',
                        help='Host to bind to (default: 127.0.0.1)')
    args = parser.parse_args(argv)

    issues = validate_config()
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        return 1

    uvicorn.run("memvector.api.main:app", host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())

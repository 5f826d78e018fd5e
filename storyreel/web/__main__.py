"""Entry point for the web server.

Usage:
    python -m storyreel.web [--port PORT] [--host HOST] [--projects-dir DIR] [--mock]
"""

import argparse
import sys
from pathlib import Path


def main() -> int:
    """Run the web server."""
    parser = argparse.ArgumentParser(
        description="StoryReel API server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--port", type=int, default=8000, help="Port to run the server on")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument("--projects-dir", type=Path, help="Directory containing projects")
    parser.add_argument("--mock", action="store_true", help="Use offline generators")

    args = parser.parse_args()

    # Import here to avoid loading FastAPI before parsing args
    import uvicorn
    from .dependencies import get_config

    # Update config with CLI args
    config = get_config()
    config.host = args.host
    config.port = args.port
    config.config_path = args.config
    config.projects_dir = args.projects_dir
    config.mock = args.mock

    print("Starting StoryReel API...")
    print(f"  Host: {args.host}")
    print(f"  Port: {args.port}")
    print(f"  URL: http://{args.host}:{args.port}")
    print()

    uvicorn.run(
        "storyreel.web.app:create_app",
        host=args.host,
        port=args.port,
        factory=True,
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())

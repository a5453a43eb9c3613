#!/usr/bin/env python3
"""
Development server entry point for the dashboard backend.

Runs the FastAPI app with uvicorn and auto-reload, serving from the src
directory so that 'config', 'api', 'dashboard', etc. import directly.

Usage:
    python dev.py
"""
import sys
from pathlib import Path

import uvicorn

SRC_DIR = Path(__file__).parent / "src"


def main():
    """Start the FastAPI development server."""
    if not SRC_DIR.exists():
        print(f"Error: Source directory not found at {SRC_DIR}", file=sys.stderr)
        sys.exit(1)

    sys.path.insert(0, str(SRC_DIR))
    from config import DEV_HOST, DEV_PORT, get_settings

    settings = get_settings()
    print(f"Starting {settings['app_name']} development server...")
    print(f"Server will be available at http://{DEV_HOST}:{DEV_PORT}")
    print(f"API documentation at http://{DEV_HOST}:{DEV_PORT}/docs")
    print(f"Analysis API: {settings['api_base_url']} (model {settings['embedding_model']})")
    print("Press Ctrl+C to stop the server")
    print()

    uvicorn.run(
        "main:app",
        app_dir=str(SRC_DIR),
        host=DEV_HOST,
        port=DEV_PORT,
        reload=True,
        reload_dirs=[str(SRC_DIR)],
    )


if __name__ == "__main__":
    main()

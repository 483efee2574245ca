#!/usr/bin/env python3
"""
Startup script for the Taskweave Recommender

This script starts the FastAPI server with proper configuration
and handles environment setup.
"""

import sys
from pathlib import Path

import uvicorn

project_root = Path(__file__).parent


def main():
    """Start the FastAPI server."""
    print("Taskweave Recommender - Starting Server")
    print("=" * 50)

    env_file = project_root / ".env"
    if not env_file.exists():
        print("⚠️  No .env file found. Using environment variables and defaults.")

    try:
        from taskweave.config.settings import get_settings, validate_settings
        settings = get_settings()
        validate_settings(settings)

        print("✓ Configuration loaded successfully")
        print(f"  - API Host: {settings.api_host}")
        print(f"  - API Port: {settings.api_port}")
        print(f"  - Model Store: {settings.model_store_backend}")
        print(f"  - Calibration: {'enabled' if settings.openai_api_key else 'disabled'}")
        print(f"  - Debug Mode: {settings.debug}")
        print(f"  - Log Level: {settings.log_level}")

    except Exception as e:
        print(f"✗ Failed to load configuration: {e}")
        sys.exit(1)

    print(f"\n🚀 Starting server on {settings.api_host}:{settings.api_port}")
    print("Press Ctrl+C to stop the server")
    print("=" * 50)

    try:
        uvicorn.run(
            "taskweave.api.main:app",
            host=settings.api_host,
            port=settings.api_port,
            reload=settings.debug,
            log_level=settings.log_level.lower(),
            access_log=True
        )
    except KeyboardInterrupt:
        print("\n\n🛑 Server stopped by user")
    except Exception as e:
        print(f"\n❌ Failed to start server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

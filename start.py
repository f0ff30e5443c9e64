#!/usr/bin/env python3
"""
Startup script da API da pizzaria (Railway/Docker)
"""
import os
import sys
import uvicorn


def main():
    """Main startup function"""
    try:
        print("=== Pizzaria API Startup ===")
        print(f"Python version: {sys.version}")

        # Get port from environment (Railway/Docker sets this)
        port = int(os.environ.get("PORT", 8000))
        host = os.environ.get("HOST", "0.0.0.0")

        print(f"Starting server on {host}:{port}")

        # Import here to ensure all modules are loaded properly
        from pizzaria.main import app

        uvicorn.run(
            app,
            host=host,
            port=port,
            access_log=True,
            log_level=os.environ.get("LOG_LEVEL", "info").lower(),
        )

    except Exception as e:
        print(f"ERROR: Failed to start application: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Quota Cache Service - Startup Script
"""
import os
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(PROJECT_ROOT))


def main():
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("RELOAD", "false").lower() in ("true", "1", "yes")

    print(f"Starting Quota Cache Service on http://{host}:{port}")
    print(f"Press Ctrl+C to stop")

    uvicorn.run(
        "backend.quota.main:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    main()

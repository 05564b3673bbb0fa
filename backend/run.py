#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Serves homebridge.main:app with auto-reload. Without DATABASE_URL the app
falls back to a local SQLite file and creates its tables on startup.
"""
import os
import sys
from pathlib import Path

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

import uvicorn

if __name__ == "__main__":
    print("Starting HomeBridge API on http://localhost:8000 (docs at /docs)")
    uvicorn.run(
        "homebridge.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )

#!/usr/bin/env python3
"""
Run script for the Wakeup API.
This script launches the FastAPI server through the app factory, so a
missing JWT_SECRET stops the process before it binds a port.
"""
import os
import sys

import uvicorn

from wakeup.config import ConfigurationError, Settings
from wakeup.main import create_app

if __name__ == "__main__":
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    print("Starting Wakeup API server...")
    uvicorn.run(
        create_app(settings),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=settings.log_level.lower(),
    )

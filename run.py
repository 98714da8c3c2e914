#!/usr/bin/env python3
"""
Development server runner.

For local development only; reads settings from .env like the app does.
"""

import uvicorn

if __name__ == "__main__":
    print("Starting MoveUp API at http://localhost:8000 (docs at /docs)")
    uvicorn.run("moveup.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")

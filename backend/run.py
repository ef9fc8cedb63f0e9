#!/usr/bin/env python3
# backend/run.py
"""
Development server runner for the EdShare API.
For local development only; production runs uvicorn behind the platform's process manager.
"""
import os
import sys
from pathlib import Path

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

import uvicorn  # noqa: E402

if __name__ == "__main__":
    print("Starting EdShare API at http://localhost:8000 (docs at /docs)")
    uvicorn.run("edshare.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")

#!/usr/bin/env python3
# backend/run.py
"""
Development server runner for the settlement API.
For local development only - defaults to console email delivery.
"""
import os
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("EMAIL_PROVIDER", "console")

import uvicorn

if __name__ == "__main__":
    print("Starting settlement API (ENVIRONMENT=" + os.environ["ENVIRONMENT"] + ")")
    print("Access at: http://localhost:8000")
    print("Manual triggers: POST /api/v1/dev/trigger-payment-processing")

    uvicorn.run("settlement.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")

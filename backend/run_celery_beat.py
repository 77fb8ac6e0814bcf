#!/usr/bin/env python3
# backend/run_celery_beat.py
"""
Development Celery beat runner for the hourly settlement schedule.
"""
import os
from pathlib import Path
import subprocess
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "development")

if __name__ == "__main__":
    print("Starting Celery beat: capture :00, auto-complete :15, payout :30")

    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "settlement.tasks.celery_app",
        "beat",
        "--loglevel=info",
    ]

    subprocess.run(cmd)

#!/usr/bin/env python
"""
Launch the Dispensary POS API under uvicorn.

Usage:
    python scripts/run_api.py

Environment:
    DISPENSARY_POS_HOST    bind address (default 0.0.0.0)
    DISPENSARY_POS_PORT    port (default 8000)
    DISPENSARY_POS_RELOAD  set to 0 to disable auto-reload
"""
import os
import subprocess
import sys
from pathlib import Path


def main():
    project_root = Path(__file__).parent.parent
    os.chdir(project_root)

    # Ensure src is in python path
    env = os.environ.copy()
    src_path = str(project_root / "src")
    if "PYTHONPATH" in env:
        env["PYTHONPATH"] = f"{src_path}{os.pathsep}{env['PYTHONPATH']}"
    else:
        env["PYTHONPATH"] = src_path

    host = env.get("DISPENSARY_POS_HOST", "0.0.0.0")
    port = env.get("DISPENSARY_POS_PORT", "8000")
    command = [
        sys.executable, "-m", "uvicorn",
        "dispensary_pos.api.main:app",
        "--host", host,
        "--port", port,
    ]
    if env.get("DISPENSARY_POS_RELOAD", "1") != "0":
        command.append("--reload")

    print(f"Starting Dispensary POS API on {host}:{port} "
          f"(jurisdiction {env.get('DISPENSARY_POS_JURISDICTION', 'DEFAULT')})...")
    try:
        subprocess.run(command, env=env)
    except KeyboardInterrupt:
        print("\nAPI stopped.")


if __name__ == "__main__":
    main()

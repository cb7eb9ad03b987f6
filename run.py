#!/usr/bin/env python3
"""Startup script for container deployments."""
import os
import uvicorn

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 4000))
    print(f"Starting ProSets API on port {port}")
    uvicorn.run(
        "prosets.main:app",
        host="0.0.0.0",
        port=port,
        log_level="info"
    )

"""
Entry point for running the compressor backend as a script.
"""
import os
import sys

import uvicorn

application_path = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, application_path)


if __name__ == "__main__":
    print("Starting Batch Image Compressor Server...")
    print(f"   Working directory: {os.getcwd()}")

    # Import the app after setting up paths
    from backend.main import app

    uvicorn.run(
        app,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "3000")),
        log_level="info"
    )

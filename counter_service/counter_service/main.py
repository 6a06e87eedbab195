"""Main entry point for the Counter Service."""

import os

import uvicorn

from counter_service.server import app


def run():
    """Serve the API on ``HOST``/``PORT`` (default 0.0.0.0:8000)."""
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    run()

"""
Entry point - imports the FastAPI app from screener.main
This allows deployment platforms to auto-detect the FastAPI application.
"""
import logging

from screener.config import get_settings
from screener.main import app

logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)

if __name__ == "__main__":
    import uvicorn
    import os
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)

"""
Main entry point for the dinner club admin API.

Serves the FastAPI application with uvicorn.
"""
import os

import uvicorn
from dotenv import load_dotenv

from .api import create_app


def main():
    """
    Entry point for the ``dinnerclub-api`` command.
    """
    load_dotenv()

    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    main()

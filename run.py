#!/usr/bin/env python3
"""Start the tasklog API server.

HOST and PORT come from the environment (or `.env`); DEBUG=true turns on
auto-reload.
"""

import os

import uvicorn
from dotenv import load_dotenv

if __name__ == "__main__":
    load_dotenv()
    uvicorn.run(
        "tasklog.api.app:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("DEBUG", "False").lower() == "true",
    )

"""
ASGI entry point for the studyblocks API.

Loads ``.env`` before building the app so settings read at import time see
it.

Usage
-----
    $ python -m studyblocks.api.server
    $ uvicorn studyblocks.api.server:app --reload
"""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from studyblocks.api.app import create_app

load_dotenv(dotenv_path=Path(".env"))

app = create_app()


def main() -> None:
    """Run the API server locally for development."""
    print(f"{'[ Key Check ]':=^60}")
    for var_name in ("GOOGLE_API_KEY", "GOOGLE_CSE_ID", "OPENAI_API_KEY"):
        value = os.getenv(var_name, "")
        status = f"✅ Loaded ({value[:8]}...)" if value else "❌ Missing"
        print(f"{var_name:<20} : {status}")
    print(f"{'=' * 60}\n")

    uvicorn.run(
        "studyblocks.api.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )


if __name__ == "__main__":
    main()

"""Run the training core API with uvicorn.

Run with:  python3 -m api.serve  (or the ``training-core-api`` script)
"""

from __future__ import annotations

import os

API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))


def main() -> None:
    import uvicorn

    from api.main import create_app

    uvicorn.run(create_app(), host=API_HOST, port=API_PORT, log_level="warning")


if __name__ == "__main__":
    main()

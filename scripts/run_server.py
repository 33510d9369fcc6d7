"""Entrypoint for launching the AxiDraw FastAPI server."""
from __future__ import annotations

import logging
import os

import uvicorn


def main() -> None:
    logging.basicConfig(
        level=os.getenv("AXIPLOT_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run("axiplot.server.app:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()

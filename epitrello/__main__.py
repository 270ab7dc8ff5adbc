"""Run the API with uvicorn: ``python -m epitrello``."""

import uvicorn

from .config import settings


def run() -> None:
    uvicorn.run("epitrello.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()

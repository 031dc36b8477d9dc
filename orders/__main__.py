"""Run the orders service with uvicorn: ``python -m orders``."""

import uvicorn

from .settings import load_settings


def main():
    settings = load_settings()
    uvicorn.run(
        "orders.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        http="h11",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

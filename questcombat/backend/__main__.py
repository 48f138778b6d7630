"""Run the combat API with uvicorn: ``python -m questcombat.backend``."""

from __future__ import annotations

import uvicorn

from questcombat.backend.config import configure_logging, load_settings


def main() -> None:
    settings = load_settings()
    configure_logging(settings)
    uvicorn.run(
        "questcombat.backend.api:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

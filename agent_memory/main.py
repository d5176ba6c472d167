"""Entry point for running the API server (``agent-memory`` console script)."""

import uvicorn

from agent_memory.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "agent_memory.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    main()

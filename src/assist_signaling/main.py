"""Run the signaling server with uvicorn."""

import uvicorn

from assist_signaling.api.app import create_app
from assist_signaling.config import Settings
from assist_signaling.containers import build_container


def main() -> None:
    """Start the server using environment settings."""
    settings = Settings()
    app = create_app(build_container(settings))
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()

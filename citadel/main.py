"""Citadel moderator server entry point"""

import uvicorn

from citadel.api import create_app
from citadel.core.config import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app(settings)

    # log_config=None keeps the Rich handlers configured by create_app
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()

"""ASGI entry point: ``uvicorn dermassist.main:app``."""

import uvicorn

from dermassist.core import configure_logging, get_settings
from dermassist.factory import create_app

_settings = get_settings()
configure_logging(_settings.log_level, environment=_settings.environment)

app = create_app(_settings)


def run() -> None:
    """Run the development server."""
    uvicorn.run(
        "dermassist.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.debug,
        log_config=None,
    )


if __name__ == "__main__":
    run()

import uvicorn

from .api import create_app
from .config import load_settings
from .logging_config import setup_logging
from .state.app_context import AppContext


def main() -> None:
    settings = load_settings()
    setup_logging(settings.logging.level, settings.logging.file)
    app = create_app(AppContext.load(settings))
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()

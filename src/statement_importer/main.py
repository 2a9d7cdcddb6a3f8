import os

import uvicorn

from statement_importer.app import app
from statement_importer.core import settings
from statement_importer.logger import get_logging_config

__all__ = ["app", "run"]


def run() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    port = settings.get_env_int("PORT", 8000, min_value=1)
    uvicorn.run(app, host=host, port=port, log_config=get_logging_config())


if __name__ == "__main__":
    run()

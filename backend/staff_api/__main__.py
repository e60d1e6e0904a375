"""Run the staff service with uvicorn: ``python -m staff_api``."""
import uvicorn

from . import config
from .dependencies import _logger


def main():
    _logger.info("%s listening on %s", config.SERVICE_NAME, config.PORT)
    uvicorn.run("staff_api.main:app", host="0.0.0.0", port=config.PORT)


if __name__ == "__main__":
    main()

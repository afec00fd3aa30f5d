"""Run the API with uvicorn: python -m labelcheck"""

import uvicorn

from .config import get_settings


def main():
    settings = get_settings()
    uvicorn.run(
        "labelcheck.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()

"""CLI entrypoint: contact-search-serve"""

import uvicorn

from contact_search.core.config import Settings


def main() -> None:
    settings = Settings()
    uvicorn.run(
        "contact_search.web.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        reload=settings.reload,
    )


if __name__ == "__main__":
    main()

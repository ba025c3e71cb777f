import uvicorn

from dmv_assistant.core.config import settings


def main() -> None:
    uvicorn.run(
        "dmv_assistant.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

import uvicorn

from topicrelay.log import configure_logging
from topicrelay.settings import settings


def main() -> None:
    configure_logging(settings.log_level)
    uvicorn.run("topicrelay.app:app", host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()

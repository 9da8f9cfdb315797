import uvicorn

from commentboard.config import settings


def main() -> None:
    uvicorn.run("commentboard.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()

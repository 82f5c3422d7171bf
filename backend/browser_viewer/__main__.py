import uvicorn

from browser_viewer import config


def main():
    uvicorn.run("browser_viewer.api.main:app", host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()

"""Run the API server: python -m shutter_otc"""

import uvicorn

from shutter_otc.config import settings


def main():
    uvicorn.run("shutter_otc.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()

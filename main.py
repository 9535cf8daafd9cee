"""CareChat - realtime chat for patients, labs and phlebotomists."""

import uvicorn

from carechat.config import settings


if __name__ == "__main__":
    uvicorn.run(
        "carechat.main:asgi_app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.DEBUG,
    )

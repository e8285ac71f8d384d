"""Start the ChatShop API (and the Telegram bot, via the app lifespan)."""
import signal
import sys

import uvicorn

from chatshop.core.config import settings


def _shutdown(sig, frame):
    print(f"\nSignal {sig} received, stopping ChatShop...")
    sys.exit(0)


if __name__ == "__main__":
    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    print(f"ChatShop backend on http://{settings.HOST}:{settings.PORT} ({settings.ENVIRONMENT})")
    uvicorn.run(
        "chatshop.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )

import uvicorn
from loguru import logger

from config import API_HOST, API_PORT, LOG_PATH
from database import init_db
from api.routes import app

logger.add(LOG_PATH, rotation="10 MB", compression="zip")


def main():
    # Creates tables (once)
    logger.info("Creating tables...")
    init_db()

    config = uvicorn.Config(app, host=API_HOST, port=API_PORT, log_level="info")
    server = uvicorn.Server(config)
    logger.info(f"Booking API starting on {API_HOST}:{API_PORT}")
    server.run()


if __name__ == "__main__":
    main()

import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./car_rental.db")

# A pending_payment booking stops blocking its car/driver after this many minutes
PENDING_PAYMENT_GRACE_MINUTES = int(os.getenv("PENDING_PAYMENT_GRACE_MINUTES", "15"))
LOCK_TIMEOUT_SECONDS = float(os.getenv("LOCK_TIMEOUT_SECONDS", "5"))
RATING_RECOMPUTE_ATTEMPTS = int(os.getenv("RATING_RECOMPUTE_ATTEMPTS", "3"))

DEFAULT_DEPOSIT_AMOUNT = float(os.getenv("DEFAULT_DEPOSIT_AMOUNT", "500"))

LOG_PATH = os.getenv("LOG_PATH", "logs/car_rental.log")
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

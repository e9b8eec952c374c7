import logging.config
import os

# Ensure logs directory exists
os.makedirs("logs", exist_ok=True)

LOGGING_CONFIG = os.getenv(
    "LOGGING_CONFIG",
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "logging.conf"),
)

logging.config.fileConfig(LOGGING_CONFIG, disable_existing_loggers=False)


logger = logging.getLogger("storefront")

"""
Configuration Module
------------------
Environment-driven settings shared by the geocoder, the shelter scraper and the API,
plus the logging setup used by the entrypoints.
"""
import os
import logging
from datetime import datetime

DATABASE_URL = os.getenv("DB_URL", "sqlite:///./shelters.db")

# Reverse geocoding (Nominatim fair-use policy: at most one request per second)
NOMINATIM_BASE_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/reverse")
USER_AGENT = os.getenv("GEOCODER_USER_AGENT", "UkraineShelterFinder/1.3")
ACCEPT_LANGUAGE = os.getenv("GEOCODER_ACCEPT_LANGUAGE", "uk,en")
REQUEST_TIMEOUT = float(os.getenv("GEOCODER_TIMEOUT", "10"))
RATE_LIMIT_DELAY = float(os.getenv("GEOCODER_MIN_INTERVAL", "1.1"))
MAX_RETRIES = int(os.getenv("GEOCODER_MAX_RETRIES", "3"))
RETRY_BASE_DELAY = float(os.getenv("GEOCODER_RETRY_BASE_DELAY", "1.0"))
CACHE_KEY_PRECISION = int(os.getenv("GEOCODER_CACHE_PRECISION", "4"))
CACHE_BACKEND = os.getenv("GEOCODER_CACHE_BACKEND", "database")

# Proximity search
DEFAULT_RADIUS_KM = float(os.getenv("SEARCH_RADIUS_KM", "50"))

# Shelter catalog source (area 3600060199 is Ukraine)
OVERPASS_URL = os.getenv("OVERPASS_URL", "https://overpass-api.de/api/interpreter")
OVERPASS_AREA_ID = int(os.getenv("OVERPASS_AREA_ID", "3600060199"))
OVERPASS_TIMEOUT = int(os.getenv("OVERPASS_TIMEOUT", "25"))

LOG_DIR = os.getenv("LOG_DIR", "logs")


def configure_logging(level=logging.INFO, log_dir=LOG_DIR):
    """
    Configure root logging with a dated log file and console output.

    Args:
        level: Root log level
        log_dir: Directory for the daily log file, created if missing
    """
    logs_dir = os.path.join(os.getcwd(), log_dir)
    os.makedirs(logs_dir, exist_ok=True)

    log_filename = os.path.join(logs_dir, f'shelters_{datetime.now().strftime("%Y%m%d")}.log')

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
        handlers=[
            logging.FileHandler(log_filename),
            logging.StreamHandler()
        ]
    )

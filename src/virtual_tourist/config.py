"""Settings for the Flickr search client and the local pin/photo store.

Values come from the environment, optionally via a `.env` file in the
project root.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(os.environ.get("VIRTUAL_TOURIST_PROJECT_ROOT", Path.cwd()))

load_dotenv(PROJECT_ROOT / ".env")

DB_PATH = PROJECT_ROOT / "virtual_tourist.duckdb"

LOG_LEVEL = os.environ.get("VIRTUAL_TOURIST_LOG_LEVEL", "INFO")

# Flickr API
FLICKR_API_KEY = os.environ.get("FLICKR_API_KEY", "")
FLICKR_API_BASE = os.environ.get("FLICKR_API_BASE", "https://api.flickr.com/services/rest/")
FLICKR_SEARCH_METHOD = "flickr.photos.search"
HTTP_TIMEOUT = 30

# Photo search
SEARCH_BBOX_HALF_WIDTH = 1.0
SEARCH_BBOX_HALF_HEIGHT = 1.0
SEARCH_LAT_RANGE = (-90.0, 90.0)
SEARCH_LON_RANGE = (-180.0, 180.0)
PHOTOS_PER_PAGE = 12
# Flickr returns roughly 4000 unique results per query; later pages repeat them.
MAX_TOTAL_RESULTS = 4000

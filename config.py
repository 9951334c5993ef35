from pathlib import Path
from dotenv import load_dotenv
import os

load_dotenv()

BASE_DIR = Path(__file__).parent

# Data directory (gitignored)
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))

# GTFS reference table (built offline by `python -m ingestion.gtfs_static`)
GTFS_LOOKUP_PATH: Path = Path(os.getenv("GTFS_LOOKUP_PATH", str(DATA_DIR / "gtfs-lookup.json")))

# GTFS static input for the lookup build: zip file, unpacked folder, or URL
GTFS_STATIC_PATH: str = os.getenv("GTFS_STATIC_PATH", "")
GTFS_STATIC_URL: str = os.getenv("GTFS_STATIC_URL", "")
GTFS_DOWNLOAD_TIMEOUT_SECONDS: float = float(os.getenv("GTFS_DOWNLOAD_TIMEOUT_SECONDS", "60"))

# Narrative times are rendered in this zone (Swiss feeds by default)
DISPLAY_TIMEZONE: str = os.getenv("DISPLAY_TIMEZONE", "Europe/Zurich")

# API (comma-separated allowed origins)
CORS_ORIGINS: list[str] = [
    origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
]

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
BASE_DIR = Path(__file__).parent
DATA_DIR = BASE_DIR / "data"
STATIC_DIR = BASE_DIR / "static"
DB_PATH = Path(os.getenv("DEBATEHUB_DB_PATH", str(DATA_DIR / "debate_hub.db")))

# Server
HOST = os.getenv("DEBATEHUB_HOST", "127.0.0.1")
PORT = int(os.getenv("DEBATEHUB_PORT", "3000"))
VERSION = "1.0.0"

# Object storage (Supabase compatible)
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")
STORAGE_BUCKET = os.getenv("DEBATEHUB_BUCKET", "user-uploads")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_FILE_SIZE", str(100 * 1024)))

# Timer
TIMER_DEFAULT_SECONDS = int(os.getenv("TIMER_DEFAULT_SECONDS", "300"))
TIMER_TICK_INTERVAL = float(os.getenv("TIMER_TICK_INTERVAL", "1.0"))  # 0 = clients drive ticks

# Stats
STATS_RESET_INTERVAL_SECS = int(os.getenv("STATS_RESET_INTERVAL_SECS", "300"))

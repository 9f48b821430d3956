import logging
import socket
import sys

import uvicorn

import config
from db.database import Database
from hub.broadcast import Broadcaster
from hub.resources import ResourceRegistry
from hub.speeches import SpeechFeed
from hub.stats import StatsTracker
from hub.timer import TimerService
from server.app import create_app
from storage.object_store import ObjectStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("debatehub")


def find_available_port(start: int, end: int) -> int:
    for port in range(start, end + 1):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind((config.HOST, port))
                return port
            except OSError:
                continue
    raise RuntimeError(f"No free port between {start} and {end}")


def build_app():
    db = Database(config.DB_PATH, default_timer_seconds=config.TIMER_DEFAULT_SECONDS)
    broadcaster = Broadcaster()
    store = ObjectStore(config.SUPABASE_URL, config.SUPABASE_KEY, config.STORAGE_BUCKET)
    if not store.is_configured:
        logger.warning("SUPABASE_URL not set, uploads and storage-path downloads are disabled")

    timer = TimerService(db, broadcaster, tick_interval=config.TIMER_TICK_INTERVAL)
    feed = SpeechFeed(db, broadcaster)
    registry = ResourceRegistry(db, store)
    stats = StatsTracker(db)
    return create_app(timer, feed, registry, stats, broadcaster)


def main():
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)

    try:
        port = find_available_port(config.PORT, config.PORT + 20)
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)

    if port != config.PORT:
        logger.info("Port %d in use, using %d", config.PORT, port)
    config.PORT = port

    app = build_app()
    logger.info("Global Debate Hub running at http://%s:%d", config.HOST, config.PORT)
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level="warning")


if __name__ == "__main__":
    main()

import logging
from datetime import datetime, timezone

from db.database import Database
from errors import ValidationError
from hub.broadcast import Broadcaster
from hub.timer import positive_int

logger = logging.getLogger(__name__)

NEW_SPEECH = "new_speech"
LATEST_SPEECHES = "latest_speeches"

DEFAULT_TOPIC = "General Debate"
DEFAULT_DURATION = 60
DEFAULT_LIMIT = 10
MAX_LIMIT = 1000


def speech_to_dict(row: dict) -> dict:
    return {
        "id": row["id"],
        "speaker": row["speaker"],
        "content": row["content"],
        "debateTopic": row["debate_topic"],
        "duration": row["duration"],
        "createdAt": row["created_at"],
        "likes": row["likes"],
    }


def coerce_limit(limit, default: int = DEFAULT_LIMIT) -> int:
    try:
        value = int(limit)
    except (TypeError, ValueError, OverflowError):
        return default
    if value <= 0:
        return default
    return min(value, MAX_LIMIT)


class SpeechFeed:
    def __init__(self, db: Database, broadcaster: Broadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def append(self, speaker, content, topic=None, duration=None) -> int:
        if not isinstance(speaker, str) or not speaker.strip():
            raise ValidationError("Speaker and content are required")
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Speaker and content are required")
        topic = topic or DEFAULT_TOPIC
        duration = DEFAULT_DURATION if duration in (None, "") else positive_int(duration, "duration")

        row = self.db.insert_speech(
            speaker, content, topic, duration, datetime.now(timezone.utc).isoformat()
        )
        speech = speech_to_dict(row)
        self.broadcaster.publish(NEW_SPEECH, speech)
        logger.info("Speech %d added by %s", speech["id"], speaker)
        return speech["id"]

    def latest(self, limit=DEFAULT_LIMIT) -> list[dict]:
        return [speech_to_dict(r) for r in self.db.latest_speeches(coerce_limit(limit))]

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import RedirectResponse
from pydantic import AliasChoices, BaseModel, Field

import config
from errors import ExternalServiceError
from hub.resources import ResourceRegistry, download_url
from hub.speeches import SpeechFeed
from hub.stats import StatsTracker
from hub.timer import TimerService

logger = logging.getLogger(__name__)


class NewSpeechRequest(BaseModel):
    speaker: str | None = None
    content: str | None = None
    debateTopic: str | None = None
    duration: int | None = None


class ResourceMetadataRequest(BaseModel):
    filename: str | None = None
    originalname: str | None = None
    mimetype: str | None = None
    size: int | None = None
    category: str | None = None
    description: str | None = None
    uploader: str | None = None
    storage_path: str | None = None
    public_url: str | None = None


class TimerStateRequest(BaseModel):
    is_running: bool = Field(False, validation_alias=AliasChoices("is_running", "isRunning"))
    remaining_time: int | None = Field(None, validation_alias=AliasChoices("remaining_time", "remainingTime"))
    total_time: int | None = Field(None, validation_alias=AliasChoices("total_time", "totalTime"))
    current_speaker: str | None = Field("", validation_alias=AliasChoices("current_speaker", "currentSpeaker"))


class TimerResetRequest(BaseModel):
    total_time: int | None = None


def create_router(timer: TimerService, feed: SpeechFeed,
                  registry: ResourceRegistry, stats: StatsTracker) -> APIRouter:
    router = APIRouter()

    # -- Status --

    @router.get("/test")
    async def get_test():
        return {
            "message": "Global Debate Hub API is running!",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": config.VERSION,
        }

    @router.get("/time")
    async def get_time():
        return {
            "serverTime": datetime.now(timezone.utc).isoformat(),
            "timestamp": int(time.time() * 1000),
        }

    @router.get("/stats")
    async def get_stats():
        return {"siteStats": stats.snapshot(), "latestSpeeches": feed.latest(5)}

    # -- Speeches --

    @router.get("/speeches")
    async def list_speeches(limit: str | None = None):
        return feed.latest(limit)

    @router.post("/speeches")
    async def add_speech(body: NewSpeechRequest):
        speech_id = feed.append(body.speaker, body.content, body.debateTopic, body.duration)
        return {"success": True, "message": "Speech added successfully", "speechId": speech_id}

    # -- Resources --

    @router.get("/resources")
    async def list_resources(category: str | None = None, sort: str | None = None, limit: str | None = None):
        return registry.list(category, sort, limit)

    @router.post("/resources")
    async def register_resource(body: ResourceMetadataRequest):
        resource = registry.register(body.model_dump())
        return {"success": True, "resource": resource, "downloadUrl": download_url(resource["id"])}

    @router.post("/resources/upload")
    async def upload_resource(
        file: UploadFile = File(...),
        category: str | None = Form(None),
        description: str | None = Form(None),
        uploader: str | None = Form(None),
    ):
        data = await file.read()
        if len(data) > config.MAX_UPLOAD_BYTES:
            raise HTTPException(413, f"File exceeds {config.MAX_UPLOAD_BYTES} bytes")
        try:
            resource = registry.upload(data, file.filename, file.content_type,
                                       category, description, uploader)
        except ExternalServiceError as e:
            logger.error("Upload to object storage failed: %s", e)
            raise HTTPException(502, "Object storage unavailable")
        return {"success": True, "resource": resource, "downloadUrl": download_url(resource["id"])}

    @router.get("/resources/{resource_id}/download")
    async def download_resource(resource_id: str):
        return RedirectResponse(registry.resolve_download(resource_id))

    # -- Timer --

    @router.get("/timer")
    async def get_timer():
        return timer.snapshot().to_dict()

    @router.post("/timer")
    async def replace_timer(body: TimerStateRequest):
        state = await timer.replace_full(
            body.is_running, body.remaining_time, body.total_time, body.current_speaker
        )
        return {"success": True, "timer": state.to_dict()}

    @router.post("/timer/reset")
    async def reset_timer(body: TimerResetRequest = TimerResetRequest()):
        state = await timer.reset(body.total_time)
        return {"success": True, "timer": state.to_dict()}

    return router

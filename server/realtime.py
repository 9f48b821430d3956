import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from errors import HubError, PersistenceError
from hub.broadcast import Broadcaster, Subscription
from hub.speeches import LATEST_SPEECHES, SpeechFeed
from hub.timer import TIMER_STATE, TimerService

logger = logging.getLogger(__name__)


async def _pump(websocket: WebSocket, sub: Subscription):
    while True:
        event, data = await sub.queue.get()
        try:
            await websocket.send_json({"event": event, "data": data})
        except (RuntimeError, WebSocketDisconnect) as e:
            logger.info("Session %d stopped receiving: %s", sub.id, e)
            return


async def _dispatch(timer: TimerService, feed: SpeechFeed, event: str, data: dict):
    if event == "timer_control":
        await timer.apply(data.get("action"), data.get("value"))
    elif event == "new_speech":
        feed.append(data.get("speaker"), data.get("content"),
                    data.get("debateTopic"), data.get("duration"))
    else:
        raise HubError(f"Unknown event: {event!r}")


def create_realtime_router(timer: TimerService, feed: SpeechFeed,
                           broadcaster: Broadcaster) -> APIRouter:
    router = APIRouter()

    @router.websocket("/ws")
    async def session(websocket: WebSocket):
        await websocket.accept()
        sub = broadcaster.subscribe(
            (TIMER_STATE, timer.snapshot().to_dict()),
            (LATEST_SPEECHES, feed.latest(10)),
        )
        sender = asyncio.create_task(_pump(websocket, sub))
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                    event = message["event"]
                    data = message.get("data") or {}
                    if not isinstance(data, dict):
                        raise ValueError("data must be an object")
                except (ValueError, KeyError, TypeError, AttributeError):
                    sub.deliver("error", {"message": "Malformed message"})
                    continue

                try:
                    await _dispatch(timer, feed, event, data)
                except PersistenceError:
                    sub.deliver("error", {"message": "Failed to save changes"})
                except HubError as e:
                    sub.deliver("error", {"message": str(e)})
        except WebSocketDisconnect:
            pass
        finally:
            broadcaster.unsubscribe(sub)
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass

    return router

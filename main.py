import asyncio
import logging

import telnyx
from fastapi import BackgroundTasks, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

from app.services.router import MessageRouter, create_router
from app.workers.timers import APSchedulerTimer
from config import settings

logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
_LOGGER = logging.getLogger("main")


def create_app(router: MessageRouter | None = None, timer: APSchedulerTimer | None = None) -> FastAPI:
    timer = timer or APSchedulerTimer()
    router = router or create_router(settings, timer)

    app = FastAPI()
    app.state.router = router
    app.state.timer = timer

    @app.on_event("startup")
    async def startup_event():
        if not settings.OPENAI_API_KEY:
            _LOGGER.warning("OPENAI_API_KEY is missing. Set it in .env before running.")
        if not settings.MONITORED_CONVERSATION:
            _LOGGER.warning("MONITORED_CONVERSATION is not set; answering every conversation.")
        timer.start()
        await router.restore()

    @app.on_event("shutdown")
    async def shutdown_event():
        router.scheduler.shutdown()
        timer.shutdown()

    async def answer(conversation_id: str, text: str) -> None:
        try:
            reply = await router.handle(conversation_id, text)
            await router.transport.send(conversation_id, reply)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Failed to answer %s: %s", conversation_id, exc)

    # --------------------------------------------
    # Endpoints
    # --------------------------------------------
    @app.get("/healthz")
    async def healthz():
        return JSONResponse(
            {
                "pending_reminders": await asyncio.to_thread(router.store.count),
                "armed_timers": len(router.scheduler),
            }
        )

    @app.post("/v1/sms/telnyx", response_class=PlainTextResponse)
    async def telnyx_webhook(request: Request, background: BackgroundTasks):
        raw_body = await request.body()
        sig = request.headers.get("telnyx-signature-ed25519")
        ts = request.headers.get("telnyx-timestamp")

        try:
            if settings.TELNYX_PUBLIC_KEY:
                telnyx.public_key = settings.TELNYX_PUBLIC_KEY
                event = telnyx.Webhook.construct_event(raw_body.decode(), sig, ts)
                payload = event.data["payload"]
            else:  # dev mode: skip signature verification
                payload = (await request.json())["data"]["payload"]
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("[Webhook] rejected payload: %s", exc)
            raise HTTPException(400, "Bad signature")

        # TelnyxObject -> dict if needed
        if hasattr(payload, "to_dict"):
            payload = payload.to_dict()

        if payload.get("type") == "ping":
            return PlainTextResponse("PONG")

        sender = payload.get("from") or payload.get("from_", {})
        if hasattr(sender, "to_dict"):
            sender = sender.to_dict()
        from_num = sender.get("phone_number")
        if not from_num:
            return PlainTextResponse("IGNORED", status_code=status.HTTP_200_OK)

        text = router.admit(
            conversation_id=from_num,
            sender_is_self=payload.get("direction") == "outbound",
            message_id=payload.get("id"),
            text=payload.get("text", ""),
        )
        if text is None:
            return PlainTextResponse("IGNORED", status_code=status.HTTP_200_OK)

        # Answered after the ack; a slow ack makes Telnyx redeliver.
        background.add_task(answer, from_num, text)
        return PlainTextResponse("OK")

    return app


app = create_app()

"""
Terminal API  ·  FastAPI + Server-Sent Events
==============================================
Started by main.py via:
    python main.py --api

Holds a single ``Terminal``. A background task ticks it every
``TICK_INTERVAL`` so deferred commands (wget, ping, apt install ...)
keep streaming output between requests.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from config.settings import API_HOST, API_PORT, TICK_INTERVAL, TERMINAL_NAME
from core.command_engine import Terminal
from core.state import Transcript

_sys = logging.getLogger("system")

KEYS = ("up", "down", "tab")


class InputRequest(BaseModel):
    line: Optional[str] = None
    submit: bool = True


# ── Helpers ───────────────────────────────────────────────────────────────────

def snapshot(terminal: Terminal) -> dict:
    return {
        "cwd":    terminal.cwd,
        "prompt": terminal.prompt,
        "input":  terminal.input,
        "busy":   terminal.busy,
        "epoch":  terminal.transcript.epoch,
        "lines":  [line.to_dict() for line in terminal.transcript],
    }


def sse_chunks(transcript: Transcript, epoch: int, seen: int) -> tuple[list[str], int, int]:
    """
    Format everything a client at ``(epoch, seen)`` has missed.

    Returns the SSE chunks plus the reader's new position.
    """
    reset, lines = transcript.since(epoch, seen)
    chunks = []
    if reset:
        chunks.append(f"event: clear\ndata: {json.dumps({'epoch': transcript.epoch})}\n\n")
    for line in lines:
        chunks.append(f"event: line\ndata: {json.dumps(line.to_dict())}\n\n")
    return chunks, transcript.epoch, len(transcript)


async def _tick_loop(terminal: Terminal) -> None:
    while True:
        await asyncio.sleep(TICK_INTERVAL)
        terminal.tick()


# ══════════════════════════════════════════════════════════════════════════════
# APP FACTORY
# ══════════════════════════════════════════════════════════════════════════════

def create_app(terminal: Optional[Terminal] = None, autotick: bool = True) -> FastAPI:
    term = terminal if terminal is not None else Terminal()

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(_tick_loop(term)) if autotick else None
        _sys.info(json.dumps({"event": "api_start", "autotick": autotick}))
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            _sys.info(json.dumps({"event": "api_stop"}))

    app = FastAPI(title=f"{TERMINAL_NAME} API", docs_url=None, redoc_url=None, lifespan=lifespan)
    app.state.terminal = term

    # ── REST API ──────────────────────────────────────────────────────────────

    @app.get("/api/state")
    async def api_state():
        return JSONResponse(snapshot(term))

    @app.post("/api/input")
    async def api_input(body: InputRequest):
        if body.line is not None:
            term.input = body.line
        if body.submit:
            term.submit()
        return JSONResponse(snapshot(term))

    @app.post("/api/keys/{key}")
    async def api_key(key: str):
        if key not in KEYS:
            raise HTTPException(status_code=404, detail=f"unknown key: {key}")
        if key == "up":
            term.history_up()
        elif key == "down":
            term.history_down()
        else:
            term.complete()
        return JSONResponse(snapshot(term))

    @app.post("/api/interrupt")
    async def api_interrupt():
        cancelled = term.interrupt()
        return JSONResponse({"cancelled": cancelled, **snapshot(term)})

    # ── Server-Sent Events  –  poll every TICK_INTERVAL, no blocking ──────────

    @app.get("/events")
    async def sse_stream(request: Request):
        async def generator() -> AsyncGenerator[str, None]:
            epoch, seen = term.transcript.epoch, 0
            hb = 0
            while True:
                if await request.is_disconnected():
                    break
                chunks, epoch, seen = sse_chunks(term.transcript, epoch, seen)
                for chunk in chunks:
                    yield chunk
                if chunks:
                    hb = 0
                    continue
                await asyncio.sleep(TICK_INTERVAL)
                hb += 1
                if hb * TICK_INTERVAL >= 15:        # heartbeat every ~15 s
                    yield ": heartbeat\n\n"
                    hb = 0

        return StreamingResponse(
            generator(),
            media_type="text/event-stream",
            headers={
                "Cache-Control":     "no-cache",
                "X-Accel-Buffering": "no",
                "Connection":        "keep-alive",
            },
        )

    return app


app = create_app()


# ══════════════════════════════════════════════════════════════════════════════
# ENTRY POINT  (called from main.py in a daemon thread)
# ══════════════════════════════════════════════════════════════════════════════

def start_api(host: str = API_HOST, port: int = API_PORT):
    import uvicorn
    print(f"[*] Terminal API → http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="warning", use_colors=False)


if __name__ == "__main__":
    start_api()

"""
Translation endpoints (Ollama proxy).

- POST /translate — translate and return every target locale at once
- POST /translate/stream — same work as server-sent events:
  `log` (progress), then `result` or `error`; keep-alive pings every 5s

Neither endpoint touches the catalogs.
"""

from __future__ import annotations

import asyncio
import json
from typing import AsyncGenerator

import structlog
from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from portfolio_cms.api.deps import get_app_settings, get_translation_client
from portfolio_cms.core.config import Settings
from portfolio_cms.core.errors import PortfolioError
from portfolio_cms.services.translation import TranslationClient, normalize_translate_request
from portfolio_cms_shared.schemas.translation import LocaleTranslation, TranslateRequest, TranslateResponse

router = APIRouter()
log = structlog.get_logger()

PING_SECONDS = 5


def _camel(translations: dict[str, dict]) -> dict[str, dict]:
    return {
        locale: LocaleTranslation.model_validate(values).model_dump(by_alias=True)
        for locale, values in translations.items()
    }


@router.post("", response_model=TranslateResponse)
async def translate(
    body: TranslateRequest,
    settings: Settings = Depends(get_app_settings),
    translator: TranslationClient = Depends(get_translation_client),
):
    job = normalize_translate_request(body, settings.locales)
    return await translator.translate(job)


async def _translation_events(
    body: TranslateRequest, locales: list[str], translator: TranslationClient
) -> AsyncGenerator[dict, None]:
    def event(name: str, **payload) -> dict:
        return {"event": name, "data": json.dumps(payload, ensure_ascii=False)}

    queue: asyncio.Queue = asyncio.Queue()
    task = None
    try:
        job = normalize_translate_request(body, locales)
        yield event("log", level="info", message="Payload validated. Preparing translation...")

        def progress(message: str, level: str) -> None:
            queue.put_nowait(event("log", level=level, message=message))

        task = asyncio.create_task(translator.translate(job, progress))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        while True:
            item = await queue.get()
            if item is None:
                break
            yield item
        yield event("result", translations=_camel(task.result()))
    except PortfolioError as exc:
        log.warning("translation.stream_failed", status=exc.status_code, error=exc.message)
        yield event("error", status=exc.status_code, message=exc.message)
    except Exception as exc:
        log.error("translation.stream_crashed", error=str(exc), exc_info=exc)
        yield event("error", status=500, message="Internal server error.")
    finally:
        if task is not None and not task.done():
            task.cancel()


@router.post("/stream")
async def translate_stream(
    body: TranslateRequest,
    settings: Settings = Depends(get_app_settings),
    translator: TranslationClient = Depends(get_translation_client),
):
    return EventSourceResponse(_translation_events(body, settings.locales, translator), ping=PING_SECONDS)

"""
Translation client: asks a local Ollama-compatible LLM to translate a
project's title, description HTML and icon tooltips.

Handles:
- Model discovery (`/api/tags`, cached) and preference-based selection
- Streamed generation (`/api/generate`, NDJSON) with progress callbacks
- Structure checks: the translated HTML must keep the source's tag tokens
  and URLs in the same order, or the attempt is retried

Nothing here reads or writes catalogs.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

import httpx
import structlog

from portfolio_cms.core.errors import TranslationError
from portfolio_cms.services.sanitizer import html_tag_tokens, html_urls, sanitize_description
from portfolio_cms_shared.schemas.translation import TranslateRequest

log = structlog.get_logger()

SOURCE_LOCALE = "pt"
PROGRESS_INTERVAL_SECONDS = 1.2
FALLBACK_MODELS = [
    "llama3.1:70b",
    "llama3.1:8b",
    "qwen2.5:7b-instruct",
    "qwen2.5:7b",
    "mistral:7b-instruct",
    "phi4",
]
PROTECTED_TERMS = (
    "HTML, CSS, JavaScript, TypeScript, React, Next.js, Shopify, Node, Express, "
    "MongoDB, PostgreSQL, MySQL, Tailwind, Vite, Git, API, GraphQL"
)
CORRECTION_SUFFIX = "\n\nThe previous answer was invalid. Return ONLY valid JSON, with no extra text."

# (message, level) -> None; level is "info", "warn" or "success"
ProgressCallback = Callable[[str, str], None]


@dataclass
class TranslationJob:
    source_lang: str
    targets: list[str]
    title: str = ""
    description_html: str = ""
    icons_tooltips: list[str] = field(default_factory=list)

    def source(self) -> dict:
        return {
            "title": self.title,
            "descriptionHtml": self.description_html,
            "iconsTooltips": self.icons_tooltips,
        }


def normalize_translate_request(request: Optional[TranslateRequest], locales: Iterable[str]) -> TranslationJob:
    if request is None:
        raise TranslationError("Invalid translation payload.", status_code=400)
    source_lang = request.source_lang.strip().lower()
    if source_lang != SOURCE_LOCALE:
        raise TranslationError(f'sourceLang must be "{SOURCE_LOCALE}".', status_code=400)

    known = list(locales)
    targets: list[str] = []
    for item in request.targets:
        locale = str(item or "").strip().lower()
        if locale in known and locale != source_lang and locale not in targets:
            targets.append(locale)
    if not targets:
        raise TranslationError('Provide at least one target locale in "targets".', status_code=400)

    content = request.content
    if content is None:
        raise TranslationError('Field "content" is required.', status_code=400)
    job = TranslationJob(
        source_lang=source_lang,
        targets=targets,
        title=content.title.strip(),
        description_html=content.description_html,
        icons_tooltips=[str(item or "") for item in content.icons_tooltips],
    )
    if not job.title and not job.description_html.strip() and not job.icons_tooltips:
        raise TranslationError(
            "Nothing to translate. Fill in title, descriptionHtml or iconsTooltips.", status_code=400
        )
    return job


def _model_id(name: str) -> str:
    name = str(name or "").strip().lower()
    return name[: -len(":latest")] if name.endswith(":latest") else name


def pick_model(installed: list[str], configured: Optional[str]) -> str:
    """Configured model first, then known-good fallbacks, then whatever is installed."""
    if not installed:
        raise TranslationError('No Ollama model found. Run "ollama pull <model>".', status_code=404)
    for candidate in [configured] + FALLBACK_MODELS:
        if not candidate:
            continue
        for model in installed:
            if model.lower() == candidate.lower():
                return model
        for model in installed:
            if _model_id(model) == _model_id(candidate):
                return model
    return installed[0]


def build_prompt(job: TranslationJob) -> str:
    example = ",\n".join(
        f'  "{locale}": {{ "title": "...", "descriptionHtml": "...", "iconsTooltips": ["..."] }}'
        for locale in job.targets
    )
    return "\n".join(
        [
            "You are a technical translator for portfolio content.",
            f"Translate from Portuguese (pt) into: {', '.join(job.targets)}.",
            "Mandatory rules:",
            "- Return ONLY valid JSON.",
            "- Keep the HTML structure of descriptionHtml exactly: same tags, same order, same attributes.",
            "- Translate only the visible text inside the HTML.",
            "- Do not change links, URLs, src, href or file paths.",
            f"- Do not translate technology names: {PROTECTED_TERMS}.",
            "- Do not translate proper names, brands or products.",
            "- Do not add explanations outside the JSON.",
            "Exact response format:",
            "{",
            example,
            "}",
            "Input:",
            json.dumps(job.source(), ensure_ascii=False),
        ]
    )


def parse_translation(raw: str, job: TranslationJob, allow_inline_style: bool = False) -> dict[str, dict]:
    """Validate the model's JSON answer; ValueError means "retry"."""
    parsed = json.loads(raw)
    if not isinstance(parsed, dict):
        raise ValueError("The answer is not a JSON object.")

    source_tokens = html_tag_tokens(job.description_html)
    source_urls = html_urls(job.description_html)
    results: dict[str, dict] = {}
    for locale in job.targets:
        entry = parsed.get(locale)
        if not isinstance(entry, dict):
            raise ValueError(f'Locale "{locale}" is missing from the answer.')
        title = entry.get("title")
        description = entry.get("descriptionHtml")
        if not isinstance(title, str):
            raise ValueError(f'Locale "{locale}" has no valid "title".')
        if not isinstance(description, str):
            raise ValueError(f'Locale "{locale}" has no valid "descriptionHtml".')
        tooltips = entry.get("iconsTooltips")
        if not isinstance(tooltips, list):
            tooltips = []
        if job.icons_tooltips and len(tooltips) != len(job.icons_tooltips):
            raise ValueError(f'Locale "{locale}" returned the wrong number of iconsTooltips.')

        if html_tag_tokens(description) != source_tokens:
            raise ValueError(f'HTML structure changed in locale "{locale}".')
        urls = html_urls(description)
        if len(urls) != len(source_urls):
            raise ValueError(f'Number of URLs changed in locale "{locale}".')
        for position, (expected, actual) in enumerate(zip(source_urls, urls), start=1):
            if expected != actual:
                raise ValueError(f'URL changed in locale "{locale}" at position {position}.')

        results[locale] = {
            "title": title.strip(),
            "description_html": sanitize_description(description, allow_inline_style),
            "icons_tooltips": [str(item or "").strip() for item in tooltips],
        }
    return results


class TranslationClient:
    """
    Talks to the Ollama HTTP API.

    Every request is bounded by `timeout`; upstream failures map to
    `TranslationError` with 404 (model), 502 (bad answer), 503 (unreachable)
    or 504 (timeout).
    """

    def __init__(
        self,
        base_url: str,
        model: Optional[str] = None,
        timeout: float = 300,
        max_retries: int = 2,
        models_cache_seconds: float = 30,
        allow_inline_style: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._models_cache_seconds = models_cache_seconds
        self._allow_inline_style = allow_inline_style
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._models: list[str] = []
        self._models_loaded_at = 0.0

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _http(self) -> httpx.AsyncClient:
        await self.open()
        assert self._client
        return self._client

    # --- Upstream calls ---

    @staticmethod
    def _upstream_error(response: httpx.Response) -> TranslationError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = str(body.get("error") or body.get("message") or f"HTTP {response.status_code}")
        if "model" in message.lower():
            return TranslationError(f"Ollama model unavailable: {message}.", status_code=404)
        return TranslationError(f"Ollama request failed: {message}", status_code=502)

    def _transport_error(self, exc: httpx.HTTPError) -> TranslationError:
        if isinstance(exc, httpx.TimeoutException):
            return TranslationError(f"Timed out calling Ollama ({self._timeout:g}s).", status_code=504)
        return TranslationError("Ollama is not reachable. Check that it is running locally.", status_code=503)

    async def installed_models(self) -> list[str]:
        now = time.monotonic()
        if self._models and now - self._models_loaded_at < self._models_cache_seconds:
            return self._models

        client = await self._http()
        try:
            response = await client.get("/api/tags")
        except httpx.HTTPError as exc:
            raise self._transport_error(exc) from exc
        if response.status_code >= 400:
            raise self._upstream_error(response)

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        models = payload.get("models") if isinstance(payload, dict) else None
        self._models = [m["name"] for m in models or [] if isinstance(m, dict) and isinstance(m.get("name"), str)]
        self._models_loaded_at = now
        return self._models

    async def generate(self, model: str, prompt: str, on_progress: Optional[ProgressCallback] = None) -> str:
        """Stream one completion and return the concatenated response text."""
        client = await self._http()
        body = {
            "model": model,
            "prompt": prompt,
            "stream": True,
            "format": "json",
            "options": {"temperature": 0.1},
        }
        received = ""
        last_progress = time.monotonic()
        try:
            async with client.stream("POST", "/api/generate", json=body) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise self._upstream_error(response)
                async for line in response.aiter_lines():
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        chunk = json.loads(line)
                    except ValueError:
                        continue
                    if not isinstance(chunk, dict):
                        continue
                    if isinstance(chunk.get("response"), str):
                        received += chunk["response"]
                        now = time.monotonic()
                        if on_progress and now - last_progress >= PROGRESS_INTERVAL_SECONDS:
                            on_progress(f"LLM running... {len(received)} characters received.", "info")
                            last_progress = now
                    if chunk.get("done"):
                        break
        except httpx.HTTPError as exc:
            raise self._transport_error(exc) from exc
        return received

    # --- Entry point ---

    async def translate(self, job: TranslationJob, on_progress: Optional[ProgressCallback] = None) -> dict[str, dict]:
        def notify(message: str, level: str = "info") -> None:
            if on_progress:
                on_progress(message, level)

        notify("Checking the models available in Ollama...")
        model = pick_model(await self.installed_models(), self._model)
        notify(f"Selected model: {model}")
        base_prompt = build_prompt(job)
        attempts = self._max_retries + 1

        last_error: Optional[Exception] = None
        for attempt in range(attempts):
            prompt = base_prompt if attempt == 0 else base_prompt + CORRECTION_SUFFIX
            try:
                notify(f"Attempt {attempt + 1} of {attempts}: generating translation...")
                raw = await self.generate(model, prompt, on_progress)
                notify("Answer received. Checking JSON and HTML structure...")
                result = parse_translation(raw, job, self._allow_inline_style)
            except (TranslationError, ValueError) as exc:
                last_error = exc
                log.warning("translation.attempt_failed", attempt=attempt + 1, model=model, error=str(exc))
                notify(f"Attempt {attempt + 1} failed: {exc}", "warn")
                if isinstance(exc, TranslationError) and exc.status_code >= 500:
                    break
                continue
            notify("Translations validated.", "success")
            log.info("translation.completed", model=model, targets=job.targets, attempts=attempt + 1)
            return result

        if isinstance(last_error, TranslationError):
            raise last_error
        raise TranslationError(f"Could not translate with Ollama: {last_error or 'invalid answer.'}")

"""Schemas for the optional translation endpoints."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import Field

from .common import CamelModel


class TranslateContent(CamelModel):
    title: str = ""
    description_html: str = ""
    icons_tooltips: List[str] = Field(default_factory=list)


class TranslateRequest(CamelModel):
    source_lang: str = ""
    targets: List[str] = Field(default_factory=list)
    content: Optional[TranslateContent] = None


class LocaleTranslation(CamelModel):
    title: str
    description_html: str
    icons_tooltips: List[str] = Field(default_factory=list)


TranslateResponse = Dict[str, LocaleTranslation]

"""
FastAPI dependencies: services built by `create_app` live on `app.state`.
"""

from fastapi import Request

from portfolio_cms.core.config import Settings
from portfolio_cms.services.projects import ProjectService
from portfolio_cms.services.translation import TranslationClient


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_project_service(request: Request) -> ProjectService:
    return request.app.state.projects


def get_translation_client(request: Request) -> TranslationClient:
    return request.app.state.translator

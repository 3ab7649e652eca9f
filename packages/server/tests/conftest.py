"""
Shared fixtures: a throwaway portfolio tree, settings and an app bound to it.
"""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from portfolio_cms.core.config import Settings
from portfolio_cms.main import create_app

CATALOG_FILES = {
    "pt": "data/projects/projects.json",
    "en": "data/projects/projects-en.json",
    "es": "data/projects/projects-es.json",
}

ICONS_JS = """export const icons = {
    react: 'assets/icons/skills/react.svg',
    python: "assets/icons/skills/python.svg",
    figma: 'assets/icons/tools/figma.svg',
};
"""


def write_catalogs(root: Path, catalogs: dict) -> None:
    for locale, relative in CATALOG_FILES.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(catalogs[locale], indent=4, ensure_ascii=False) + "\n", encoding="utf-8")


def read_catalogs(root: Path) -> dict:
    return {
        locale: json.loads((root / relative).read_text(encoding="utf-8"))
        for locale, relative in CATALOG_FILES.items()
    }


@pytest.fixture
def portfolio_root(tmp_path: Path) -> Path:
    root = tmp_path / "portfolio"
    write_catalogs(root, {locale: {"web": [], "mobile": []} for locale in CATALOG_FILES})
    (root / "assets/images/projects/thumbs").mkdir(parents=True)
    (root / "js").mkdir()
    (root / "js/icons.js").write_text(ICONS_JS, encoding="utf-8")
    return root


@pytest.fixture
def settings(portfolio_root: Path) -> Settings:
    return Settings(
        portfolio_root=portfolio_root,
        gallery_max_width=64,
        log_format="text",
    )


@pytest.fixture
def app(settings: Settings):
    return create_app(settings)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_image():
    """Encoded test image bytes."""

    def _make(width: int = 40, height: int = 30, color=(200, 30, 30), fmt: str = "PNG", mode: str = "RGB") -> bytes:
        image = Image.new(mode, (width, height), color)
        buffer = io.BytesIO()
        image.save(buffer, format=fmt)
        return buffer.getvalue()

    return _make


@pytest.fixture
def project_payload():
    """A valid create/update payload; keyword arguments replace top-level keys."""

    def _payload(title: str = "Portfolio Site", **overrides) -> dict:
        payload = {
            "category": "web",
            "assetFolder": "portfolio-site",
            "common": {
                "initialDate": "2023-01",
                "endDate": "2023-06",
                "projectUrlLink": "https://example.com",
                "linkedinUrlLink": "",
                "githubUrlLink": "https://github.com/example/portfolio",
                "developed": True,
                "developingPercentage": 100,
                "compatibility": 3,
                "icons": [{"class": "react", "tooltip": "React"}],
            },
            "locales": {
                "pt": {"title": title, "description": "<p>Descrição do projeto</p>"},
                "en": {"title": f"{title} (en)", "description": "<p>Project description</p>"},
                "es": {"title": f"{title} (es)", "description": "<p>Descripción del proyecto</p>"},
            },
            "galleryPlan": [{"kind": "new", "fileId": "g1"}],
            "thumbnailPlan": {"kind": "new", "fileId": "t1"},
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def stored_record():
    """A catalog record as the site stores it."""

    def _record(identifier: str, title: str | None = None, image: str = "", images: list | None = None, **extra) -> dict:
        record = {
            "id": identifier,
            "title": title or identifier.upper(),
            "description": "<p>x</p>",
            "image": image,
            "initialDate": "2022-01",
            "endDate": "2022-02",
            "projectUrlLink": "",
            "linkedinUrlLink": "",
            "githubUrlLink": "",
            "developed": True,
            "developingPercentage": 100,
            "icons": [{"class": "python", "tooltip": "Python"}],
            "compatibility": 2,
            "images": images or [],
        }
        record.update(extra)
        return record

    return _record

#!/usr/bin/env python3
"""Create a sample portfolio tree with three projects, catalogs and images.

Usage:
    python scripts/seed_sample_portfolio.py [ROOT]

ROOT defaults to PCMS_PORTFOLIO_ROOT (or ./portfolio). Existing catalogs are
never overwritten.
"""

import argparse
import asyncio
import io
import sys
from pathlib import Path

from PIL import Image

from portfolio_cms.core.config import Settings
from portfolio_cms.core.sandbox import PathSandbox, join_relative
from portfolio_cms.services import imaging
from portfolio_cms.services.catalog_store import CatalogStore
from portfolio_cms.services.projects import build_record
from portfolio_cms.services.resolver import modal_slug
from portfolio_cms_shared.schemas.projects import LocaleContent, SharedFields

ICONS_JS = """export const icons = {
    html: 'assets/icons/skills/html.svg',
    css: 'assets/icons/skills/css.svg',
    javascript: 'assets/icons/skills/javascript.svg',
    react: 'assets/icons/skills/react.svg',
    python: 'assets/icons/skills/python.svg',
    figma: 'assets/icons/tools/figma.svg',
};
"""

SAMPLES = [
    {
        "category": "web",
        "folder": "loja-virtual",
        "color": (38, 110, 160),
        "titles": {"pt": "Loja Virtual", "en": "Online Store", "es": "Tienda Virtual"},
        "descriptions": {
            "pt": "<p>Loja <strong>online</strong> com carrinho e pagamento.</p>",
            "en": "<p><strong>Online</strong> store with cart and checkout.</p>",
            "es": "<p>Tienda <strong>online</strong> con carrito y pago.</p>",
        },
        "common": {
            "initialDate": "2023-02",
            "endDate": "2023-07",
            "projectUrlLink": "https://example.com/store",
            "githubUrlLink": "https://github.com/example/store",
            "developed": True,
            "developingPercentage": 100,
            "compatibility": 3,
            "icons": [{"class": "react", "tooltip": "React"}, {"class": "css", "tooltip": "CSS"}],
        },
    },
    {
        "category": "web",
        "folder": "painel-financeiro",
        "color": (60, 150, 90),
        "titles": {"pt": "Painel Financeiro", "en": "Finance Dashboard", "es": "Panel Financiero"},
        "descriptions": {
            "pt": "<p>Gráficos e relatórios de despesas.</p>",
            "en": "<p>Expense charts and reports.</p>",
            "es": "<p>Gráficos e informes de gastos.</p>",
        },
        "common": {
            "initialDate": "2024-01",
            "endDate": "2024-05",
            "developed": False,
            "developingPercentage": 60,
            "compatibility": 1,
            "icons": [{"class": "python", "tooltip": "Python"}],
        },
    },
    {
        "category": "mobile",
        "folder": "app-de-receitas",
        "color": (190, 90, 40),
        "titles": {"pt": "App de Receitas", "en": "Recipe App", "es": "App de Recetas"},
        "descriptions": {
            "pt": "<p>Receitas com lista de compras.</p>",
            "en": "<p>Recipes with a shopping list.</p>",
            "es": "<p>Recetas con lista de compras.</p>",
        },
        "common": {
            "initialDate": "2022-09",
            "endDate": "2023-01",
            "developed": True,
            "developingPercentage": 100,
            "compatibility": 2,
            "icons": [{"class": "javascript", "tooltip": "JavaScript"}],
        },
    },
]


def swatch(color, size=(1200, 800)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def write_file(sandbox: PathSandbox, relative: str, data: bytes) -> None:
    path = sandbox.resolve(relative)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def seed(root: Path) -> int:
    root.mkdir(parents=True, exist_ok=True)
    settings = Settings(portfolio_root=root)
    sandbox = PathSandbox(root)
    store = CatalogStore(sandbox, settings.catalog_files)

    existing = [p for p in settings.catalog_files.values() if sandbox.resolve(p).exists()]
    if existing:
        print(f"Catalogs already present under {root}: {', '.join(existing)}", file=sys.stderr)
        return 1

    catalogs = {locale: {"web": [], "mobile": []} for locale in store.locales}
    ext, fmt, quality = settings.image_extension, settings.image_format, settings.image_quality

    for sample in SAMPLES:
        folder = sample["folder"]
        gallery = []
        for number, factor in enumerate((1.0, 0.7), start=1):
            color = tuple(int(channel * factor) for channel in sample["color"])
            relative = join_relative(settings.projects_assets_dir, folder, f"{folder}{number}{ext}")
            write_file(sandbox, relative, imaging.fit_to_width(swatch(color), settings.gallery_max_width, fmt, quality))
            gallery.append(relative)

        thumbnail = join_relative(settings.projects_thumbs_dir, f"{folder}{ext}")
        write_file(
            sandbox,
            thumbnail,
            imaging.cover_thumbnail(
                swatch(sample["color"]), settings.thumb_target_width, settings.thumb_target_height, fmt, quality
            ),
        )

        identifier = modal_slug(sample["titles"][settings.reference_locale])
        common = SharedFields.model_validate(sample["common"])
        for locale in store.locales:
            content = LocaleContent(title=sample["titles"][locale], description=sample["descriptions"][locale])
            catalogs[locale][sample["category"]].append(
                build_record(None, identifier, content, common, thumbnail, gallery)
            )

    for relative in settings.catalog_files.values():
        sandbox.resolve(relative).parent.mkdir(parents=True, exist_ok=True)
    await store.write_all(catalogs)

    icons = sandbox.resolve(settings.icons_file_path)
    if not icons.exists():
        write_file(sandbox, settings.icons_file_path, ICONS_JS.encode("utf-8"))

    print(f"Seeded {len(SAMPLES)} projects under {root}.")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a sample portfolio tree")
    parser.add_argument("root", nargs="?", default=None, help="Portfolio root directory")
    args = parser.parse_args()
    root = Path(args.root) if args.root else Settings().portfolio_root
    sys.exit(asyncio.run(seed(root)))


if __name__ == "__main__":
    main()

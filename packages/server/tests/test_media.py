"""
Media materializer and image codec tests.
"""

from __future__ import annotations

import io

import pytest
from PIL import Image

from portfolio_cms.core.errors import ImageProcessingFailed, MissingAsset, PathEscape, ValidationFailed
from portfolio_cms.core.sandbox import PathSandbox
from portfolio_cms.services import imaging
from portfolio_cms.services.media import (
    MediaMaterializer,
    asset_folder_token,
    collect_uploads,
    parse_tagged_filename,
)
from portfolio_cms_shared.schemas.projects import ProjectPayload

GALLERY_DIR = "assets/images/projects/portfolio-site"
THUMBS_DIR = "assets/images/projects/thumbs"


@pytest.fixture
def media(settings):
    return MediaMaterializer(PathSandbox(settings.portfolio_root), settings)


@pytest.fixture
def uploads_for(make_image):
    def _uploads(*file_ids: str, data: bytes | None = None):
        parts = [(f"{fid}__{fid}.png", "image/png", data or make_image()) for fid in file_ids]
        return collect_uploads(parts, max_files=40, max_bytes=5 * 1024 * 1024)

    return _uploads


def _open(path):
    image = Image.open(path)
    image.load()
    return image


# ---------------------------------------------------------------------------
# Upload intake
# ---------------------------------------------------------------------------


class TestUploads:
    def test_parse_tagged_filename(self):
        assert parse_tagged_filename("abc__my photo.png") == ("abc", "my photo.png")
        assert parse_tagged_filename("a__b__c.png") == ("a", "b__c.png")
        assert parse_tagged_filename("photo.png") == (None, "photo.png")
        assert parse_tagged_filename("__photo.png") == (None, "__photo.png")

    def test_collects_by_file_id(self, make_image):
        uploads = collect_uploads([("g1__a.png", "image/png", make_image())], 40, 1024 * 1024)
        assert list(uploads) == ["g1"]
        assert uploads["g1"].original_name == "a.png"

    @pytest.mark.parametrize(
        "parts,fragment",
        [
            ([("g1__a.txt", "text/plain", b"x")], "not a valid image"),
            ([("a.png", "image/png", b"x")], "no internal identifier"),
            ([("g1__a.png", "image/png", b"x"), ("g1__b.png", "image/png", b"y")], "Duplicate"),
            ([("g1__a.png", "image/png", b"x" * 2048)], "exceeds"),
        ],
    )
    def test_rejections(self, parts, fragment):
        with pytest.raises(ValidationFailed) as exc_info:
            collect_uploads(parts, max_files=40, max_bytes=1024)
        assert fragment in exc_info.value.message

    def test_too_many_files(self):
        parts = [(f"g{i}__a.png", "image/png", b"x") for i in range(3)]
        with pytest.raises(ValidationFailed):
            collect_uploads(parts, max_files=2, max_bytes=1024)

    def test_asset_folder_token(self):
        assert asset_folder_token("  Meu Projeto Incrível! ") == "meu-projeto-incrivel"
        assert asset_folder_token("../../etc") == "etc"
        assert asset_folder_token("***") == "project"


# ---------------------------------------------------------------------------
# Gallery
# ---------------------------------------------------------------------------


class TestGallery:
    async def test_n_uploads_get_consecutive_numbers(self, media, settings, project_payload, uploads_for):
        ids = ["g3", "g1", "g2", "g4"]
        payload = ProjectPayload.model_validate(
            project_payload(galleryPlan=[{"kind": "new", "fileId": fid} for fid in ids])
        )
        result = await media.materialize(payload, uploads_for(*ids, "t1"), allow_existing=False)

        assert result.gallery_paths == [f"{GALLERY_DIR}/portfolio-site{n}.webp" for n in range(1, 5)]
        folder = settings.portfolio_root / GALLERY_DIR
        assert sorted(p.name for p in folder.iterdir()) == [f"portfolio-site{n}.webp" for n in range(1, 5)]

    async def test_numbering_skips_taken_names(self, media, settings, project_payload, uploads_for):
        folder = settings.portfolio_root / GALLERY_DIR
        folder.mkdir(parents=True)
        (folder / "portfolio-site1.webp").write_bytes(b"old")
        (folder / "portfolio-site3.webp").write_bytes(b"old")

        payload = ProjectPayload.model_validate(
            project_payload(galleryPlan=[{"kind": "new", "fileId": "g1"}, {"kind": "new", "fileId": "g2"}])
        )
        result = await media.materialize(payload, uploads_for("g1", "g2", "t1"), allow_existing=False)

        assert result.gallery_paths == [f"{GALLERY_DIR}/portfolio-site2.webp", f"{GALLERY_DIR}/portfolio-site4.webp"]
        assert (folder / "portfolio-site1.webp").read_bytes() == b"old"

    async def test_gallery_images_are_resized_to_max_width(self, media, settings, project_payload, uploads_for, make_image):
        payload = ProjectPayload.model_validate(project_payload())
        uploads = uploads_for("g1", "t1", data=make_image(width=200, height=100))
        result = await media.materialize(payload, uploads, allow_existing=False)

        image = _open(settings.portfolio_root / result.gallery_paths[0])
        assert image.format == "WEBP"
        assert image.size == (settings.gallery_max_width, settings.gallery_max_width // 2)

    async def test_small_images_are_not_enlarged(self, media, settings, project_payload, uploads_for, make_image):
        payload = ProjectPayload.model_validate(project_payload())
        result = await media.materialize(
            payload, uploads_for("g1", "t1", data=make_image(width=20, height=10)), allow_existing=False
        )
        assert _open(settings.portfolio_root / result.gallery_paths[0]).size == (20, 10)

    async def test_existing_reference_passes_through(self, media, settings, project_payload, uploads_for):
        stored = settings.portfolio_root / GALLERY_DIR / "portfolio-site1.webp"
        stored.parent.mkdir(parents=True)
        stored.write_bytes(b"stored")
        payload = ProjectPayload.model_validate(
            project_payload(
                galleryPlan=[
                    {"kind": "existing", "path": f"/{GALLERY_DIR}/portfolio-site1.webp"},
                    {"kind": "new", "fileId": "g2"},
                ]
            )
        )
        result = await media.materialize(payload, uploads_for("g2", "t1"), allow_existing=True)
        assert result.gallery_paths == [
            f"{GALLERY_DIR}/portfolio-site1.webp",
            f"{GALLERY_DIR}/portfolio-site2.webp",
        ]
        assert stored.read_bytes() == b"stored"

    async def test_existing_reference_not_allowed_on_create(self, media, project_payload, uploads_for):
        payload = ProjectPayload.model_validate(
            project_payload(galleryPlan=[{"kind": "existing", "path": f"{GALLERY_DIR}/x.webp"}])
        )
        with pytest.raises(ValidationFailed):
            await media.materialize(payload, uploads_for("t1"), allow_existing=False)

    async def test_missing_existing_reference(self, media, project_payload, uploads_for):
        payload = ProjectPayload.model_validate(
            project_payload(galleryPlan=[{"kind": "existing", "path": f"{GALLERY_DIR}/gone.webp"}])
        )
        with pytest.raises(MissingAsset):
            await media.materialize(payload, uploads_for("t1"), allow_existing=True)

    @pytest.mark.parametrize("path", ["../../outside.webp", "data/projects/projects.json"])
    async def test_reference_outside_assets_is_refused(self, media, project_payload, uploads_for, path):
        payload = ProjectPayload.model_validate(project_payload(galleryPlan=[{"kind": "existing", "path": path}]))
        with pytest.raises(PathEscape):
            await media.materialize(payload, uploads_for("t1"), allow_existing=True)

    async def test_missing_upload_for_file_id(self, media, project_payload, uploads_for):
        payload = ProjectPayload.model_validate(project_payload())
        with pytest.raises(ValidationFailed):
            await media.materialize(payload, uploads_for("t1"), allow_existing=False)

    async def test_reserved_folder(self, media, project_payload, uploads_for):
        payload = ProjectPayload.model_validate(project_payload(assetFolder="Thumbs"))
        with pytest.raises(ValidationFailed):
            await media.materialize(payload, uploads_for("g1", "t1"), allow_existing=False)

    async def test_corrupt_upload_writes_nothing(self, media, settings, project_payload, make_image):
        payload = ProjectPayload.model_validate(
            project_payload(galleryPlan=[{"kind": "new", "fileId": "g1"}, {"kind": "new", "fileId": "g2"}])
        )
        uploads = collect_uploads(
            [
                ("g1__ok.png", "image/png", make_image()),
                ("g2__broken.png", "image/png", b"definitely not an image"),
                ("t1__t.png", "image/png", make_image()),
            ],
            40,
            1024 * 1024,
        )
        with pytest.raises(ImageProcessingFailed):
            await media.materialize(payload, uploads, allow_existing=False)

        assert not (settings.portfolio_root / GALLERY_DIR).exists()
        assert list((settings.portfolio_root / THUMBS_DIR).iterdir()) == []


# ---------------------------------------------------------------------------
# Thumbnail
# ---------------------------------------------------------------------------


class TestThumbnail:
    async def test_cover_fit_to_card_size(self, media, settings, project_payload, uploads_for, make_image):
        payload = ProjectPayload.model_validate(project_payload())
        uploads = uploads_for("g1", "t1", data=make_image(width=400, height=400))
        result = await media.materialize(payload, uploads, allow_existing=False)

        assert result.thumbnail_path == f"{THUMBS_DIR}/portfolio-site.webp"
        image = _open(settings.portfolio_root / result.thumbnail_path)
        assert image.size == (settings.thumb_target_width, settings.thumb_target_height)

    async def test_unrelated_file_forces_suffix(self, media, settings, project_payload, uploads_for):
        (settings.portfolio_root / THUMBS_DIR / "portfolio-site.webp").write_bytes(b"other")
        (settings.portfolio_root / THUMBS_DIR / "portfolio-site-2.webp").write_bytes(b"other")

        payload = ProjectPayload.model_validate(project_payload())
        result = await media.materialize(payload, uploads_for("g1", "t1"), allow_existing=False)
        assert result.thumbnail_path == f"{THUMBS_DIR}/portfolio-site-3.webp"

    async def test_own_thumbnail_is_replaced(self, media, settings, project_payload, uploads_for):
        own = settings.portfolio_root / THUMBS_DIR / "portfolio-site.webp"
        own.write_bytes(b"previous")

        payload = ProjectPayload.model_validate(project_payload())
        result = await media.materialize(
            payload, uploads_for("g1", "t1"), allow_existing=True, replaceable=[f"{THUMBS_DIR}/portfolio-site.webp"]
        )
        assert result.thumbnail_path == f"{THUMBS_DIR}/portfolio-site.webp"
        assert own.read_bytes() != b"previous"

    async def test_logo_on_background(self, media, settings, project_payload, make_image):
        payload = ProjectPayload.model_validate(
            project_payload(
                thumbnailPlan={"kind": "new", "fileId": "t1"},
                thumbnailConfig={
                    "mode": "logoColor",
                    "logoFileId": "logo",
                    "backgroundColor": "#F00",
                    "paddingPercent": 20,
                },
            )
        )
        uploads = collect_uploads(
            [
                ("g1__a.png", "image/png", make_image()),
                ("logo__logo.png", "image/png", make_image(width=50, height=50, color=(0, 0, 255, 255), mode="RGBA")),
            ],
            40,
            1024 * 1024,
        )
        result = await media.materialize(payload, uploads, allow_existing=False)

        image = _open(settings.portfolio_root / result.thumbnail_path).convert("RGB")
        assert image.size == (settings.thumb_target_width, settings.thumb_target_height)
        red, green, blue = image.getpixel((0, 0))
        assert red > 200 and green < 60 and blue < 60
        red, green, blue = image.getpixel((image.width // 2, image.height // 2))
        assert blue > 200 and red < 60


class TestImaging:
    @pytest.mark.parametrize(
        "value,expected",
        [("#ABC", "#aabbcc"), ("#0a0B0c", "#0a0b0c"), ("red", "#222222"), (None, "#222222"), ("#12345", "#222222")],
    )
    def test_normalize_hex_color(self, value, expected):
        assert imaging.normalize_hex_color(value) == expected

    @pytest.mark.parametrize("value,expected", [(-5, 0), (55, 40), ("12", 12), ("x", 15), (None, 15)])
    def test_clamp_padding(self, value, expected):
        assert imaging.clamp_padding(value) == expected

    def test_exif_orientation_is_applied(self):
        image = Image.new("RGB", (40, 20), (10, 200, 10))
        exif = image.getexif()
        exif[0x0112] = 6  # rotate 90 degrees clockwise on display
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", exif=exif)

        output = Image.open(io.BytesIO(imaging.fit_to_width(buffer.getvalue(), 100, "png")))
        assert output.size == (20, 40)

    def test_jpeg_output_flattens_alpha(self, make_image):
        data = make_image(width=10, height=10, color=(0, 0, 0, 0), mode="RGBA")
        output = Image.open(io.BytesIO(imaging.fit_to_width(data, 100, "jpeg", 80)))
        assert output.format == "JPEG"
        assert output.mode == "RGB"

    def test_undecodable_bytes(self):
        with pytest.raises(ImageProcessingFailed):
            imaging.cover_thumbnail(b"\x00\x01", 10, 10)

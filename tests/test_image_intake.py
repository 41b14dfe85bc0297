"""
Tests for screenshot intake: extension resolution, allow-list and TGA conversion.
"""

import io
import os

import pytest
from PIL import Image

from conftest import image_bytes
from errors import UnsupportedImageType
from image_intake import resolve_extension, store_image


class TestResolveExtension:
    """Tests for resolve_extension precedence."""

    def test_filename_wins_over_mimetype(self):
        assert resolve_extension("shot.png", "image/jpeg") == ".png"

    def test_filename_is_case_insensitive(self):
        assert resolve_extension("WoWScrnShot.JPG", None) == ".jpg"

    def test_mimetype_when_filename_unrecognized(self):
        assert resolve_extension("screenshot", "image/webp") == ".webp"
        assert resolve_extension("shot.dat", "image/x-tga") == ".tga"

    def test_mimetype_parameters_ignored(self):
        assert resolve_extension(None, "image/png; charset=binary") == ".png"

    def test_allowed_filename_with_generic_mimetype(self):
        assert resolve_extension("shot.tga", "application/octet-stream") == ".tga"

    def test_generic_mimetype_falls_back_to_bin(self):
        assert resolve_extension("blob", "application/octet-stream") == ".bin"
        assert resolve_extension(None, "Application/Octet-Stream; x=1") == ".bin"

    @pytest.mark.parametrize(
        "filename, mimetype",
        [("notes.txt", "text/plain"), ("shot", "text/html"), (None, None), ("x.gif", "image/gif")],
    )
    def test_rejects_non_images(self, filename, mimetype):
        with pytest.raises(UnsupportedImageType) as exc:
            resolve_extension(filename, mimetype)
        assert exc.value.status_code == 415


class TestStoreImage:
    """Tests for store_image writing and conversion."""

    def test_png_stored_verbatim(self, tmp_path):
        data = image_bytes("PNG")
        url = store_image(data, "shot.png", "image/png", str(tmp_path))
        assert url.startswith("/uploads/") and url.endswith(".png")
        assert (tmp_path / os.path.basename(url)).read_bytes() == data

    def test_generated_names_are_unique(self, tmp_path):
        data = image_bytes("JPEG")
        a = store_image(data, "shot.jpg", "image/jpeg", str(tmp_path))
        b = store_image(data, "shot.jpg", "image/jpeg", str(tmp_path))
        assert a != b

    def test_creates_upload_dir(self, tmp_path):
        target = tmp_path / "nested" / "uploads"
        store_image(image_bytes("PNG"), "a.png", "image/png", str(target))
        assert len(list(target.iterdir())) == 1

    def test_tga_converted_to_png(self, tmp_path):
        url = store_image(image_bytes("TGA", size=(5, 2)), "WoWScrnShot_0101.tga", "image/x-tga", str(tmp_path))
        assert url.endswith(".png")
        files = list(tmp_path.iterdir())
        assert [f.suffix for f in files] == [".png"]
        with Image.open(io.BytesIO(files[0].read_bytes())) as img:
            assert img.format == "PNG"
            assert img.size == (5, 2)

    def test_broken_tga_keeps_original_bytes(self, tmp_path):
        data = b"definitely not a targa file"
        url = store_image(data, "broken.tga", "image/x-tga", str(tmp_path))
        assert url.endswith(".tga")
        assert (tmp_path / os.path.basename(url)).read_bytes() == data

    def test_generic_upload_stored_as_bin(self, tmp_path):
        data = b"\x00\x01opaque"
        url = store_image(data, "blob", "application/octet-stream", str(tmp_path))
        assert url.endswith(".bin")
        assert (tmp_path / os.path.basename(url)).read_bytes() == data

    def test_rejected_upload_writes_nothing(self, tmp_path):
        with pytest.raises(UnsupportedImageType):
            store_image(b"hello", "notes.txt", "text/plain", str(tmp_path))
        assert list(tmp_path.iterdir()) == []

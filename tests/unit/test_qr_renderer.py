"""
Unit Tests for QrRenderer
=========================
"""

import io
from unittest.mock import patch

import pytest

from lodgebot.infrastructure.whatsapp.qr_renderer import QrRenderer

PAIRING_REF = "2@Yx9kq1,abcDEF==,ghiJKL==,mnoPQR=="
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class TestQrRenderer:

    def test_render_writes_png(self, tmp_path):
        png_path = tmp_path / "data" / "qr_code.png"
        renderer = QrRenderer(str(png_path), terminal_enabled=False)

        assert renderer.render(PAIRING_REF) is True
        assert png_path.read_bytes().startswith(PNG_SIGNATURE)

    def test_render_overwrites_previous_code(self, tmp_path):
        png_path = tmp_path / "qr_code.png"
        renderer = QrRenderer(str(png_path), terminal_enabled=False)

        renderer.render("first")
        first = png_path.read_bytes()
        renderer.render("second-challenge-with-more-data")

        assert png_path.read_bytes() != first

    def test_terminal_output(self, tmp_path):
        stream = io.StringIO()
        renderer = QrRenderer(str(tmp_path / "qr.png"), terminal_enabled=True, stream=stream)

        renderer.render(PAIRING_REF)

        assert len(stream.getvalue().splitlines()) > 10

    def test_png_failure_returns_false(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        renderer = QrRenderer(str(blocker / "qr.png"), terminal_enabled=False)

        assert renderer.render(PAIRING_REF) is False

    def test_terminal_failure_still_writes_png(self, tmp_path):
        png_path = tmp_path / "qr.png"
        renderer = QrRenderer(str(png_path), terminal_enabled=True)

        with patch.object(renderer, "render_terminal", side_effect=OSError("stdout closed")):
            assert renderer.render(PAIRING_REF) is True

        assert png_path.exists()

    @pytest.mark.asyncio
    async def test_render_async(self, tmp_path):
        png_path = tmp_path / "qr.png"
        renderer = QrRenderer(str(png_path), terminal_enabled=False)

        assert await renderer.render_async(PAIRING_REF) is True
        assert png_path.exists()

"""
QR Renderer - operator-facing pairing challenge output
======================================================
Prints the pairing payload as an ASCII QR code and writes it as a PNG so the
operator can scan it from the terminal or from a served image.
"""

import asyncio
import base64
import io
import sys
from pathlib import Path
from typing import Optional, TextIO

import qrcode

from lodgebot.core.logger import get_logger

logger = get_logger(__name__)


class QrRenderer:

    def __init__(self, png_path: str, terminal_enabled: bool = True, stream: Optional[TextIO] = None):
        self.png_path = Path(png_path)
        self.terminal_enabled = terminal_enabled
        self.stream = stream

    def render_png_bytes(self, payload: str) -> bytes:
        qr = self._build(payload)
        buffer = io.BytesIO()
        qr.make_image().save(buffer)
        return buffer.getvalue()

    def render_terminal(self, payload: str) -> None:
        qr = self._build(payload)
        qr.print_ascii(out=self.stream or sys.stdout, invert=True)

    def render(self, payload: str) -> bool:
        """
        Render to every operator channel.

        Each channel fails independently; returns True when the PNG was written.
        """
        if self.terminal_enabled:
            try:
                self.render_terminal(payload)
            except Exception as e:
                logger.warning("qr_renderer.terminal_failed", {"error": str(e)})

        try:
            png = self.render_png_bytes(payload)
            self.png_path.parent.mkdir(parents=True, exist_ok=True)
            self.png_path.write_bytes(png)
        except Exception as e:
            logger.error("qr_renderer.png_failed", {
                "path": str(self.png_path),
                "error": str(e)
            }, exc_info=True)
            return False

        logger.info("qr_renderer.png_saved", {"path": str(self.png_path)})
        logger.debug("qr_renderer.data_url", {
            "data_url": "data:image/png;base64," + base64.b64encode(png).decode("ascii")
        })
        return True

    async def render_async(self, payload: str) -> bool:
        """``render`` off the event loop so PNG encoding never stalls event delivery"""
        return await asyncio.to_thread(self.render, payload)

    @staticmethod
    def _build(payload: str) -> qrcode.QRCode:
        qr = qrcode.QRCode(border=1, error_correction=qrcode.constants.ERROR_CORRECT_L)
        qr.add_data(payload)
        qr.make(fit=True)
        return qr

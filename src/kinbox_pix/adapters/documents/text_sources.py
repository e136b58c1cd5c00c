"""Fontes de texto para comprovantes: PDF (pdfplumber) e imagem (Tesseract).

Ambas são best-effort: documento ilegível ou corrompido gera "" e um log de
aviso, nunca exceção. O PdfTextSource cai para OCR quando o PDF não tem
camada de texto (comprovante escaneado ou "impresso" como imagem).
"""

from __future__ import annotations

import io
import logging
from collections.abc import Mapping

import pdfplumber
import pytesseract
from anyio import to_thread
from PIL import Image, ImageOps

from kinbox_pix.domain.enums import DocumentKind
from kinbox_pix.domain.protocols import TextSource
from kinbox_pix.observability.logging import get_logger
from kinbox_pix.observability.timing import timed

logger: logging.Logger = get_logger(__name__)

OCR_CONFIG = "--oem 3 --psm 6"
OCR_RESOLUTION_DPI = 300


def _ocr_image(image: Image.Image, language: str) -> str:
    """Roda Tesseract em uma imagem já carregada."""
    prepared = ImageOps.exif_transpose(image).convert("L")
    return pytesseract.image_to_string(prepared, lang=language, config=OCR_CONFIG)


class ImageTextSource(TextSource):
    """OCR de imagens (foto ou print do comprovante)."""

    def __init__(self, language: str = "por") -> None:
        self._language = language

    def extract_text(self, content: bytes) -> str:
        try:
            with Image.open(io.BytesIO(content)) as image:
                text = _ocr_image(image, self._language)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "image_ocr_failed",
                extra={"error": type(exc).__name__, "size_bytes": len(content)},
            )
            return ""

        logger.debug("image_ocr_extracted", extra={"chars": len(text)})
        return text


class PdfTextSource(TextSource):
    """Texto de PDFs: camada de texto primeiro, OCR das páginas como fallback."""

    def __init__(
        self,
        language: str = "por",
        max_pages: int = 4,
        min_text_chars: int = 40,
    ) -> None:
        self._language = language
        self._max_pages = max_pages
        self._min_text_chars = min_text_chars

    def extract_text(self, content: bytes) -> str:
        try:
            text = self._extract_text_layer(content)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "pdf_text_layer_failed",
                extra={"error": type(exc).__name__, "size_bytes": len(content)},
            )
            return ""

        if len(text.strip()) >= self._min_text_chars:
            return text

        logger.info(
            "pdf_text_layer_too_short",
            extra={"chars": len(text.strip()), "min_chars": self._min_text_chars},
        )
        try:
            ocr_text = self._ocr_pages(content)
        except Exception as exc:  # noqa: BLE001
            logger.warning("pdf_ocr_failed", extra={"error": type(exc).__name__})
            return text

        return ocr_text or text

    def _extract_text_layer(self, content: bytes) -> str:
        parts: list[str] = []
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            for page in pdf.pages[: self._max_pages]:
                page_text = page.extract_text(x_tolerance=3, y_tolerance=3)
                if page_text:
                    parts.append(page_text)
        return "\n".join(parts)

    def _ocr_pages(self, content: bytes) -> str:
        parts: list[str] = []
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            for page in pdf.pages[: self._max_pages]:
                rendered = page.to_image(resolution=OCR_RESOLUTION_DPI).original
                parts.append(_ocr_image(rendered, self._language))
        return "\n".join(part for part in parts if part.strip())


class DocumentTextExtractor:
    """Seleciona a fonte de texto pelo tipo do documento.

    A extração é CPU-bound (OCR) e roda em worker thread para não bloquear
    o event loop.
    """

    def __init__(self, sources: Mapping[DocumentKind, TextSource]) -> None:
        missing = set(DocumentKind) - set(sources)
        if missing:
            raise ValueError(f"Fonte de texto ausente para: {sorted(missing)}")
        self._sources = dict(sources)

    async def extract(self, kind: DocumentKind, content: bytes) -> str:
        source = self._sources[kind]
        with timed("text_extraction", kind=kind.value):
            return await to_thread.run_sync(source.extract_text, content)


def create_text_extractor(
    language: str = "por",
    pdf_max_pages: int = 4,
    pdf_min_text_chars: int = 40,
) -> DocumentTextExtractor:
    """Factory com as fontes padrão (pdfplumber + Tesseract)."""
    return DocumentTextExtractor(
        {
            DocumentKind.PDF: PdfTextSource(language, pdf_max_pages, pdf_min_text_chars),
            DocumentKind.IMAGE: ImageTextSource(language),
        }
    )

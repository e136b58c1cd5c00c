"""Classificação de anexos (PDF x imagem) e fingerprint do documento.

Ordem de decisão:
1. Assinatura dos bytes (magic numbers)
2. Content-Type informado no download
3. Padrão: imagem (o OCR tenta qualquer anexo que não seja PDF)
"""

from __future__ import annotations

import hashlib

from kinbox_pix.domain.enums import DocumentKind
from kinbox_pix.domain.models import ClassifiedAttachment

# O cabeçalho %PDF- pode vir após lixo inicial; leitores aceitam até 1024 bytes
PDF_SIGNATURE = b"%PDF-"
PDF_SIGNATURE_WINDOW = 1024

IMAGE_SIGNATURES: tuple[bytes, ...] = (
    b"\x89PNG\r\n\x1a\n",
    b"\xff\xd8\xff",  # JPEG
    b"GIF87a",
    b"GIF89a",
    b"II*\x00",  # TIFF little-endian
    b"MM\x00*",  # TIFF big-endian
    b"BM",  # BMP
)


def compute_sha256(content: bytes) -> str:
    """Calcula hash SHA256 do conteúdo."""
    return hashlib.sha256(content).hexdigest()


def _is_webp(content: bytes) -> bool:
    return content[:4] == b"RIFF" and content[8:12] == b"WEBP"


def detect_by_signature(content: bytes) -> DocumentKind | None:
    """Detecta o tipo pelos primeiros bytes; None se desconhecido."""
    if PDF_SIGNATURE in content[:PDF_SIGNATURE_WINDOW]:
        return DocumentKind.PDF
    if content.startswith(IMAGE_SIGNATURES) or _is_webp(content):
        return DocumentKind.IMAGE
    return None


def detect_by_content_type(content_type: str | None) -> DocumentKind | None:
    """Usa o Content-Type (ignorando parâmetros como charset)."""
    if not content_type:
        return None
    mime = content_type.split(";", 1)[0].strip().lower()
    if mime in ("application/pdf", "application/x-pdf"):
        return DocumentKind.PDF
    if mime.startswith("image/"):
        return DocumentKind.IMAGE
    return None


def classify_attachment(content: bytes, content_type: str | None = None) -> ClassifiedAttachment:
    """Classifica o anexo e calcula o fingerprint SHA-256."""
    kind = detect_by_signature(content)
    detected_by = "signature"
    if kind is None:
        kind = detect_by_content_type(content_type)
        detected_by = "content_type"
    if kind is None:
        kind = DocumentKind.IMAGE
        detected_by = "default"

    return ClassifiedAttachment(
        kind=kind,
        sha256=compute_sha256(content),
        size_bytes=len(content),
        detected_by=detected_by,
    )

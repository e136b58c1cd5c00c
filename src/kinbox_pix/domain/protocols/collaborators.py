"""Contratos dos colaboradores externos do pipeline de comprovantes.

Cada contrato define apenas a fronteira; implementações concretas vivem em
adapters/ e infra/. Os erros ficam junto ao contrato que os levanta.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from kinbox_pix.domain.models import FetchedAttachment


class AttachmentFetchError(Exception):
    """Falha de transporte ao baixar o anexo."""

    pass


class AttachmentTooLargeError(AttachmentFetchError):
    """Anexo excede o limite configurado."""

    pass


class ConversionReportError(Exception):
    """Falha ao reportar a conversão (recuperável pelo chamador)."""

    pass


class NotificationError(Exception):
    """Falha ao notificar o canal de chat."""

    pass


class TextSource(ABC):
    """Extrai texto bruto de um documento já classificado.

    Best-effort: documento malformado resulta em "" (nunca exceção).
    """

    @abstractmethod
    def extract_text(self, content: bytes) -> str: ...


class AttachmentFetcher(ABC):
    """Baixa o anexo referenciado pelo chat."""

    @abstractmethod
    async def fetch(self, url: str) -> FetchedAttachment:
        """Retorna bytes e content-type.

        Raises:
            AttachmentFetchError: timeout, erro de rede ou status não-2xx
        """
        ...


class ConversionReporter(ABC):
    """Reporta a compra concluída ao sistema de atribuição."""

    @abstractmethod
    async def report_purchase(
        self,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        user_data: dict[str, list[str]],
    ) -> str:
        """Envia o evento Purchase e retorna o id do reporte.

        Args:
            amount: Valor total da sessão (2 casas)
            currency: Moeda (sempre BRL)
            idempotency_key: session_id da sessão
            user_data: Identificadores já hasheados (ph/em)

        Raises:
            ConversionReportError: Em qualquer falha de envio
        """
        ...


class Notifier(ABC):
    """Entrega mensagens de retorno ao chat (fire-and-forget)."""

    @abstractmethod
    async def notify(self, customer_key: str, text: str, payload: dict[str, Any]) -> None:
        """Raises NotificationError em falha; o orquestrador apenas loga."""
        ...

"""kinbox_pix: leitura de comprovantes Pix e ledger de compras por conversa."""

__version__ = "0.1.0"

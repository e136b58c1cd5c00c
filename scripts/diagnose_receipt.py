#!/usr/bin/env python
"""Script de diagnóstico da leitura de comprovantes.

Roda a cadeia local sobre um arquivo (sem ledger, sem Meta):
1. Classificação do anexo (PDF x imagem)
2. Extração de texto (pdfplumber / Tesseract)
3. Normalização
4. Valor e txid

Uso:
    python scripts/diagnose_receipt.py caminho/do/comprovante.pdf
"""

import asyncio
import sys
from pathlib import Path

# Adicionar src ao path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from kinbox_pix.adapters.documents.classifier import classify_attachment
from kinbox_pix.adapters.documents.text_sources import create_text_extractor
from kinbox_pix.extraction import extract_txid, extract_value, normalize_text


async def diagnose(path: Path) -> int:
    content = path.read_bytes()
    classified = classify_attachment(content)
    print(f"📄 Arquivo: {path.name} ({classified.size_bytes} bytes)")
    print(f"  - Tipo: {classified.kind.value} (por {classified.detected_by})")
    print(f"  - SHA-256: {classified.sha256}")

    raw_text = await create_text_extractor().extract(classified.kind, content)
    text = normalize_text(raw_text)
    if not text:
        print("❌ ERRO: Nenhum texto extraído")
        return 1

    print("\n📝 Texto normalizado:")
    for line in text.splitlines():
        print(f"  | {line}")

    extraction = extract_value(text)
    print("\n💰 Valor:")
    print(f"  - Valor: {extraction.value}")
    print(f"  - Confiança: {extraction.confidence}")
    print(f"  - Candidatos: {[str(c) for c in extraction.all_candidates]}")
    print(f"  - txid: {extract_txid(text)}")

    if not extraction.found:
        print("⚠️  ATENÇÃO: valor não encontrado")
        return 1
    return 0


def main() -> int:
    if len(sys.argv) != 2:
        print(__doc__)
        return 2
    return asyncio.run(diagnose(Path(sys.argv[1])))


if __name__ == "__main__":
    sys.exit(main())

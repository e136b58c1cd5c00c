"""Context manager para medir latência por etapa do pipeline."""

from __future__ import annotations

import contextlib
import time
from collections.abc import Generator

from kinbox_pix.observability.logging import get_logger

logger = get_logger(__name__)


@contextlib.contextmanager
def timed(component: str, **fields: object) -> Generator[None, None, None]:
    """Mede e loga o tempo decorrido de uma etapa.

    Usage:
        with timed("ocr", kind="pdf"):
            text = source.extract_text(content)

    Campos extras (sem PII) são anexados ao log `component_latency`.
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "component_latency",
            extra={
                "component": component,
                "elapsed_ms": round(elapsed_ms, 2),
                **fields,
            },
        )

"""Entrypoint: python -m amen_messaging"""
from __future__ import annotations

import logging

import uvicorn

from amen_messaging.api.middleware.correlation_id import CorrelationIdFilter


def main() -> None:
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s")
    )
    logging.basicConfig(level=logging.INFO, handlers=[handler])
    uvicorn.run(
        "amen_messaging.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level="info",
        log_config=None,
    )


if __name__ == "__main__":
    main()

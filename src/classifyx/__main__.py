"""Run the ClassifyX API via ``python -m classifyx``."""

from __future__ import annotations

import uvicorn

from classifyx.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "classifyx.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level="info",
    )

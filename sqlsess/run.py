#!/usr/bin/env python3
"""Run the sqlsess demo application"""
import uvicorn

from sqlsess.core.config import Settings
from sqlsess.core.utils.logging_config import setup_logging

if __name__ == "__main__":
    settings = Settings()
    setup_logging(log_level=settings.log_level, enable_json=settings.enable_json_logging)
    uvicorn.run(
        "sqlsess.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )

#!/usr/bin/env python3
"""
Start the chargeline REST API server.
"""

import uvicorn
from loguru import logger

from chargeline.config import API_HOST, API_PORT

if __name__ == "__main__":
    logger.info("Starting chargeline API server...")
    logger.info(f"REST API will be available at: http://localhost:{API_PORT}")
    logger.info(f"API documentation: http://localhost:{API_PORT}/docs")

    uvicorn.run(
        "chargeline.api_server:app",
        host=API_HOST,
        port=API_PORT,
        reload=True,
        log_level="info",
    )

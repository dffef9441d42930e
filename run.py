#!/usr/bin/env python3
"""
Loan Engine Entry Point

Starts the FastAPI server with the loan engine API.
"""

import sys

import uvicorn

from loan_engine.api import create_app
from loan_engine.config import config
from loan_engine.logging_config import setup_logging


if __name__ == "__main__":
    logger = setup_logging(config.log_level, config.log_format, config.log_file)
    logger.info(f"Starting Loan Engine API on {config.api_host}:{config.api_port}")
    
    try:
        uvicorn.run(create_app(), host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        logger.info("Shutting down Loan Engine API")
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)

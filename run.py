#!/usr/bin/env python3
"""
FX Ledger Entry Point

Starts the FastAPI server with the ledger system configured from the
environment (FXLEDGER_* variables or a .env file).
"""

import sys

from fx_ledger.api import run_server
from fx_ledger.config import get_config
from fx_ledger.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(
        level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file
    )

    print("Starting FX Ledger...")
    print(f"Ledger database: {config.database_path}")
    print(f"API available at: http://{config.api_host}:{config.api_port}")
    print(f"Documentation at: http://{config.api_host}:{config.api_port}/docs")
    print()

    try:
        # Start the server
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug=False  # Set to True for development
        )
    except KeyboardInterrupt:
        print("\nShutting down FX Ledger...")
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)

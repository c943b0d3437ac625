"""
BlockRunner - Main entry point.
"""

import logging
import sys

from runner.src.config import get_settings
from runner.src.worker import run_worker

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

def main():
    """Main entry point."""
    logger.info("Starting BlockRunner worker")
    logger.info(f"Redis URL: {settings.redis_url}")
    logger.info(f"Device channel: {settings.request_channel} -> {settings.event_channel}")
    logger.info(f"Command timeout: {settings.command_timeout}s")

    run_worker()

if __name__ == "__main__":
    main()

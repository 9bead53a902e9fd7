"""
Queue Notifier Background Worker Runner
Run this as a separate process: python run_queue_notifier.py
"""

import asyncio
import logging
import sys

from barbershop.workers.queue_notifier import run_queue_notifier

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    logger.info("🚀 Starting Queue Notifier Worker...")
    try:
        asyncio.run(run_queue_notifier())
    except KeyboardInterrupt:
        logger.info("👋 Queue notifier stopped by user")
    except Exception as e:
        logger.error(f"❌ Queue notifier crashed: {e}")
        sys.exit(1)

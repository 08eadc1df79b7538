"""Entry point for the recording pipeline worker."""

from ddtrace import patch_all

from aligned_pipeline.dependencies import get_worker
from aligned_pipeline.logging import setup_logging

logger = setup_logging()
patch_all()


def main():
    """Starts the recording pipeline worker."""
    logger.info("Starting recording pipeline worker")
    worker = get_worker()
    worker.start()


if __name__ == "__main__":
    main()

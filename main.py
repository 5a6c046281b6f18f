import logging

from courtbot.config import load_settings
from courtbot.worker import run_cycle


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def main() -> int:
    _setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Starting badminton court monitoring")

    settings = load_settings()

    try:
        run_cycle(settings)
    except Exception as e:
        logger.error("Monitoring cycle failed (%s: %s)", type(e).__name__, e)
        raise

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

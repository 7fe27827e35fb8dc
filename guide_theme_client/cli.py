import asyncio
import sys

from loguru import logger
from guide_theme_client.config import ThemeUpdaterSettings
from guide_theme_client.errors import ConfigurationError, ThemeUpdateError
from guide_theme_client.workflow import ThemeUpdateWorkflow


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


def main() -> int:
    """Entry point for CI: 0 when the theme job completed, 1 on any fatal condition"""
    try:
        settings = ThemeUpdaterSettings.load()
    except ConfigurationError as e:
        configure_logging()
        logger.error(str(e))
        return 1

    configure_logging(settings.log_level)

    try:
        asyncio.run(ThemeUpdateWorkflow(settings).run())
    except ThemeUpdateError as e:
        logger.error(f"Theme update failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

import asyncio
import logging
import sys

from clients.froggi_client import FroggiClient
from clients.ocr_client import OcrClient
from config.config import NeedsBootstrap, Ready, Settings, resolve_startup
from errors import FroggiOcrError
from services.bootstrapper import ConfigBootstrapper
from services.poll_relay import PollRelayLoop


async def run(settings: Settings):
    """Bootstrap when there is no config, otherwise relay until stopped"""
    state = resolve_startup(settings.config_path)

    if isinstance(state, NeedsBootstrap):
        async with FroggiClient("") as froggi_client:
            await ConfigBootstrapper(froggi_client, config_path=state.path).run()
        return

    if isinstance(state, Ready):
        config = state.config
        async with OcrClient(config.ocr_url) as ocr_client, \
                FroggiClient(config.froggi_url) as froggi_client:
            await PollRelayLoop(config, ocr_client, froggi_client).run()


def main():
    settings = Settings()
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Shutting down froggi-ocr...")
    except FroggiOcrError as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

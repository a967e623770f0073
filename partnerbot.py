# partnerbot/partnerbot.py
"""
Partner progression bot - Main entry point.
Admin surface for the partner progression engine on aiogram 3.x.
"""
import asyncio
import logging
import sys
from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage

from config import Config, ConfigurationError
from core.db import setup_database
from core.system_services import (
    get_bot_info,
    start_bot_polling,
    setup_signal_handlers
)
from handlers import register_all_handlers
from models import register_all_listeners
from progression_system.config.ranks import get_rank_ladder
from progression_system.events.setup import setup_progression_event_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler('partnerbot.log')
    ]
)

logger = logging.getLogger(__name__)


async def initialize_bot():
    """
    Initialize bot with all services and configurations.

    Returns:
        Tuple[Bot, Dispatcher]: Initialized instances
    """
    try:
        logger.info("=" * 60)
        logger.info("PARTNER BOT INITIALIZATION")
        logger.info("=" * 60)

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 1: Load configuration from .env
        # ═══════════════════════════════════════════════════════════════════════
        logger.info("📋 Loading configuration from .env...")
        Config.initialize_from_env()
        await Config.validate_critical_keys()
        logger.info("✓ Configuration loaded")

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 2: Setup database and ledger listeners
        # ═══════════════════════════════════════════════════════════════════════
        logger.info("💾 Setting up database...")
        register_all_listeners()
        setup_database()
        logger.info("✓ Database ready")

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 3: Load rank ladder
        # ═══════════════════════════════════════════════════════════════════════
        ladder = get_rank_ladder()
        logger.info(f"✓ Rank ladder: {', '.join(r.name for r in ladder)}")

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 4: Initialize bot and dispatcher
        # ═══════════════════════════════════════════════════════════════════════
        api_token = Config.get(Config.API_TOKEN)
        if not api_token:
            raise ConfigurationError("Bot API token not configured")

        bot = Bot(token=api_token)
        dp = Dispatcher(storage=MemoryStorage())

        bot_info = await get_bot_info(bot)
        bot_username = bot_info.get('username', 'unknown')
        Config.set(Config.BOT_USERNAME, bot_username)

        logger.info(f"🤖 Bot initialized: @{bot_username}")

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 5: Register handlers and progression events
        # ═══════════════════════════════════════════════════════════════════════
        logger.info("🎯 Registering handlers...")
        register_all_handlers(dp, bot)
        setup_progression_event_handlers()
        logger.info("✓ Handlers registered")

        Config.set(Config.SYSTEM_READY, True)

        logger.info("=" * 60)
        logger.info("✅ INITIALIZATION COMPLETE")
        logger.info("=" * 60)

        return bot, dp

    except Exception as e:
        logger.critical(f"❌ Initialization failed: {e}", exc_info=True)
        raise


async def main():
    """Main entry point."""
    try:
        bot, dp = await initialize_bot()

        loop = asyncio.get_running_loop()
        setup_signal_handlers(loop, bot, dp)

        logger.info("🔄 Starting bot polling...")
        await start_bot_polling(bot, dp)

    except KeyboardInterrupt:
        logger.info("⚠️ Bot stopped by user")
    except Exception as e:
        logger.critical(f"❌ Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        logger.info("👋 Bot shutdown complete")


if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped")

from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv

from tradeoffer_bot.config import BotConfig, load_config
from tradeoffer_bot.interfaces import (
    ConfirmationApprover,
    DecisionHandler,
    InventoryService,
    SessionRecoverer,
    TradeClient,
)
from tradeoffer_bot.manager import TradeOfferManager
from tradeoffer_bot.storage import Storage

LOGGER = logging.getLogger("tradeoffer_bot")


def load_env_file(path: str | Path = ".env") -> bool:
    env_path = Path(path)
    if not env_path.exists():
        return False
    return bool(load_dotenv(dotenv_path=env_path, override=False))


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_manager(
    client: TradeClient,
    handler: DecisionHandler,
    session: SessionRecoverer,
    approver: ConfirmationApprover,
    inventory: InventoryService,
    config: BotConfig | None = None,
) -> TradeOfferManager:
    if config is None:
        load_env_file()
        config = load_config()
    setup_logging(config.log_level)
    if not config.identity_secret:
        LOGGER.warning("identity_secret_missing confirmations_will_fail=true")
    storage = Storage(config.database_path) if config.persist_poll_state else None
    manager = TradeOfferManager(
        config,
        client,
        handler,
        session,
        approver,
        inventory,
        storage=storage,
    )
    restored = manager.restore()
    LOGGER.info(
        "offer_manager_ready account=%s persist_poll_state=%s restored_reservations=%s",
        config.account_id,
        config.persist_poll_state,
        restored,
    )
    return manager

"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.engine import Engine

from .config import BaseConfig
from .infra.database import SessionFactory, bootstrap_database
from .infra.repositories import SQLModelAccountRepository, SQLModelDebtRepository
from .services.summary import SummaryCache


@dataclass
class AppContext:
    """Configuration, repositories and caches shared by one process."""

    # Configuration
    config: BaseConfig

    engine: Engine
    session_factory: SessionFactory

    # Repositories
    debt_repo: SQLModelDebtRepository
    account_repo: SQLModelAccountRepository

    summary_cache: SummaryCache = field(default_factory=SummaryCache)
    dev_mode: bool = False

    def account_labels(self, user_id: int) -> dict[int, str]:
        """Map account id to its ``holder - bank`` label for exports."""

        return {
            account.id: account.label
            for account in self.account_repo.list_all(user_id=user_id)
            if account.id is not None
        }


def create_app_context(config: Optional[BaseConfig] = None) -> AppContext:
    """Create and initialize the application context."""

    if config is None:
        config = BaseConfig()

    engine, session_factory = bootstrap_database(config)
    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        debt_repo=SQLModelDebtRepository(session_factory),
        account_repo=SQLModelAccountRepository(session_factory),
        dev_mode=config.DEV_MODE,
    )

"""
Service container for dependency injection.

This module defines a container that manages the creation and lifecycle of
service objects, repository objects, and other application components.
"""

import logging
from typing import TypeVar, cast

from stock_dashboard.config import AppConfig
from stock_dashboard.db import Database
from stock_dashboard.repositories.dividend_repository import DividendRepository
from stock_dashboard.repositories.holding_repository import HoldingRepository
from stock_dashboard.repositories.settings_repository import SettingsRepository
from stock_dashboard.repositories.transaction_repository import TransactionRepository
from stock_dashboard.services.dividend_service import DividendService
from stock_dashboard.services.market_data_service import MarketDataService
from stock_dashboard.services.portfolio_service import PortfolioService
from stock_dashboard.services.recommendation_service import RecommendationService
from stock_dashboard.store import SQLitePortfolioStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ServiceContainer:
    """
    Container for application services and repositories.

    All user-scoped services are bound to the configured user_id.
    """

    def __init__(self, config: AppConfig, db: Database):
        """
        Initialise the service container.

        Args:
            config: Application configuration
            db: Database connection
        """
        self.config = config
        self.db = db
        self._repositories: dict[type, object] = {}
        self._services: dict[type, object] = {}

        # Initialise repositories
        self._init_repositories()

        # Initialise services
        self._init_services()

    def _init_repositories(self) -> None:
        """Initialise all repositories."""
        self._repositories[HoldingRepository] = HoldingRepository(self.db)
        self._repositories[TransactionRepository] = TransactionRepository(self.db)
        self._repositories[SettingsRepository] = SettingsRepository(self.db)
        self._repositories[DividendRepository] = DividendRepository(self.db)

    def _init_services(self) -> None:
        """Initialise all services."""
        self.store = SQLitePortfolioStore(
            self.db,
            self.get_repository(HoldingRepository),
            self.get_repository(TransactionRepository),
            self.get_repository(SettingsRepository),
        )
        self._services[PortfolioService] = PortfolioService(self.store, self.config.user_id)

        self._services[MarketDataService] = MarketDataService(
            cache_seconds=self.config.quote_cache_seconds,
            batch_size=self.config.quote_batch_size,
            batch_delay_seconds=self.config.quote_batch_delay_seconds,
        )

        dividend_repo: DividendRepository = self.get_repository(DividendRepository)
        self._services[DividendService] = DividendService(
            dividend_repo, self.config.user_id, self.config.dividend_lookback_days
        )
        self._services[RecommendationService] = RecommendationService()
        logger.debug(f"Services initialised for user {self.config.user_id}")

    def get_repository(self, repo_type: type[T]) -> T:
        """
        Get a repository instance by type.

        Raises:
            KeyError: If repository type is not registered
        """
        if repo_type not in self._repositories:
            raise KeyError(f"Repository {repo_type.__name__} not registered")

        return cast(T, self._repositories[repo_type])

    def get_service(self, service_type: type[T]) -> T:
        """
        Get a service instance by type.

        Raises:
            KeyError: If service type is not registered
        """
        if service_type not in self._services:
            raise KeyError(f"Service {service_type.__name__} not registered")

        return cast(T, self._services[service_type])

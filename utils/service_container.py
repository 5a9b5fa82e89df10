"""Service container for dependency injection.

Repositories and the search, ranking and voting services are registered here
once at startup and looked up by the cogs, so nothing reaches for a global
session. Tests build the same container around an in-memory database.
"""

from collections.abc import Callable
from typing import Any, TypeVar, cast

from config import HearsayConfig
from utils.fuzzy_search import BitapMatcher, FieldWeights, FuzzyOptions
from utils.ranking import RankingEngine
from utils.repositories.quote_repository import QuoteRepository
from utils.repositories.speaker_repository import SpeakerRepository
from utils.repositories.user_repository import UserRepository
from utils.repositories.vote_repository import VoteRepository
from utils.search_pipeline import SearchPipeline
from utils.sqlalchemy_db import SessionMaker
from utils.votes import VoteAggregator

T = TypeVar("T")

# Service identifiers
CONFIG = "config"
SESSION_MAKER = "session_maker"
QUOTES = "quotes"
SPEAKERS = "speakers"
USERS = "users"
VOTES = "votes"
VOTE_AGGREGATOR = "vote_aggregator"
SEARCH = "search"
RANKING = "ranking"


class ServiceContainer:
    """A container for managing service dependencies.

    Services can be registered as instances or as factories; singleton
    factories run once on first lookup.
    """

    def __init__(self) -> None:
        """Initialize an empty service container."""
        self._services: dict[str, Any] = {}
        self._factories: dict[str, Callable[[], Any]] = {}
        self._singletons: dict[str, bool] = {}
        self._singleton_instances: dict[str, Any] = {}

    def register(self, service_id: str, service: Any) -> None:
        """Register a service instance.

        Args:
            service_id: The identifier for the service.
            service: The service instance.
        """
        self._services[service_id] = service

    def register_factory(
        self, service_id: str, factory: Callable[[], Any], singleton: bool = True
    ) -> None:
        """Register a service factory.

        Args:
            service_id: The identifier for the service.
            factory: A callable that creates the service.
            singleton: Whether the service should be created only once.
        """
        self._factories[service_id] = factory
        self._singletons[service_id] = singleton

    def get(self, service_id: str) -> Any:
        """Get a service by its identifier.

        Raises:
            KeyError: If the service is not registered.
        """
        if service_id in self._services:
            return self._services[service_id]

        if service_id in self._factories:
            if self._singletons[service_id] and service_id in self._singleton_instances:
                return self._singleton_instances[service_id]

            instance = self._factories[service_id]()
            if self._singletons[service_id]:
                self._singleton_instances[service_id] = instance
            return instance

        raise KeyError(f"Service '{service_id}' not found in container")

    def get_typed(self, service_id: str, expected_type: type[T]) -> T:
        """Get a service by its identifier, checking its type.

        Raises:
            KeyError: If the service is not registered.
            TypeError: If the service is not of the expected type.
        """
        service = self.get(service_id)
        if not isinstance(service, expected_type):
            raise TypeError(
                f"Service '{service_id}' is not of type {expected_type.__name__}"
            )
        return cast(expected_type, service)

    def has(self, service_id: str) -> bool:
        return service_id in self._services or service_id in self._factories


def build_container(session_maker: SessionMaker, config: HearsayConfig) -> ServiceContainer:
    """Wire the repositories and core services around one session factory.

    Args:
        session_maker: Session factory for the quote database.
        config: Search weights, fuzzy tuning and ranking limits come from here.

    Returns:
        A container holding every service the cogs use.
    """
    container = ServiceContainer()
    container.register(CONFIG, config)
    container.register(SESSION_MAKER, session_maker)

    container.register_factory(QUOTES, lambda: QuoteRepository(session_maker))
    container.register_factory(SPEAKERS, lambda: SpeakerRepository(session_maker))
    container.register_factory(USERS, lambda: UserRepository(session_maker))
    container.register_factory(VOTES, lambda: VoteRepository(session_maker))
    container.register_factory(
        VOTE_AGGREGATOR, lambda: VoteAggregator(container.get(VOTES))
    )
    container.register_factory(
        SEARCH,
        lambda: SearchPipeline(
            container.get(QUOTES),
            BitapMatcher(FuzzyOptions.from_config(config)),
            FieldWeights.from_config(config),
        ),
    )
    container.register_factory(
        RANKING,
        lambda: RankingEngine(
            container.get(QUOTES),
            container.get(VOTE_AGGREGATOR),
            max_limit=config.ranking_max_limit,
        ),
    )
    return container

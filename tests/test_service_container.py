"""
Tests for the service container and the production wiring.
"""

import os
import sys

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from utils.fuzzy_search import FieldWeights
from utils.ranking import RankingEngine
from utils.search_pipeline import SearchPipeline
from utils.service_container import (
    CONFIG,
    QUOTES,
    RANKING,
    SEARCH,
    VOTE_AGGREGATOR,
    VOTES,
    ServiceContainer,
)
from utils.votes import VoteAggregator


class TestServiceContainer:
    def test_instances_and_factories(self):
        container = ServiceContainer()
        container.register("answer", 42)
        container.register_factory("fresh", list, singleton=False)
        container.register_factory("shared", list)

        assert container.get("answer") == 42
        assert container.get("fresh") is not container.get("fresh")
        assert container.get("shared") is container.get("shared")
        assert container.has("fresh") and not container.has("missing")

    def test_missing_service(self):
        with pytest.raises(KeyError):
            ServiceContainer().get("missing")

    def test_typed_lookup(self):
        container = ServiceContainer()
        container.register("answer", 42)

        assert container.get_typed("answer", int) == 42
        with pytest.raises(TypeError):
            container.get_typed("answer", str)


class TestBuildContainer:
    def test_services_share_repositories(self, container):
        aggregator = container.get_typed(VOTE_AGGREGATOR, VoteAggregator)
        ranking = container.get_typed(RANKING, RankingEngine)
        search = container.get_typed(SEARCH, SearchPipeline)

        assert aggregator.votes is container.get(VOTES)
        assert ranking.aggregator is aggregator
        assert search.quotes is container.get(QUOTES)

    def test_config_drives_search_and_ranking(self, container, test_config):
        assert container.get(CONFIG) is test_config
        assert container.get(SEARCH).weights == FieldWeights.from_config(test_config)
        assert container.get(RANKING).max_limit == test_config.ranking_max_limit

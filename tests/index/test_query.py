"""Tests for QueryEngine."""

import pytest

from frp_fleet.index.filters import TargetFilter
from frp_fleet.index.models import ConfigKind
from frp_fleet.index.query import QueryEngine

from conftest import client_config


def names(records):
    return sorted(r.name for r in records)


class TestQueryEngine:
    """Test suite for index queries."""

    @pytest.fixture
    def indexed(self, indexer, fleet_files):
        indexer.reconcile()
        return fleet_files

    def test_all_sorted_by_path(self, query, indexed):
        assert [r.name for r in query.all()] == [
            "frpc-a",
            "frpc-b",
            "frpc-c",
            "frps",
            "visitor",
        ]

    def test_get(self, query, indexed):
        path = str(indexed["frpc-a.toml"])
        assert query.get(path).proxy_count == 2
        assert query.get("/nowhere/frpc.toml") is None

    def test_by_kind(self, query, indexed):
        assert names(query.by_kind(ConfigKind.CLIENT)) == ["frpc-a", "frpc-b", "frpc-c"]
        assert names(query.by_kind("server")) == ["frps"]
        assert names(query.by_kind("visitor")) == ["visitor"]

    def test_by_kind_rejects_unknown(self, query, indexed):
        with pytest.raises(ValueError):
            query.by_kind("relay")

    def test_by_server_address(self, query, indexed):
        """Only configs dialing the address match."""
        assert names(query.by_server_address("10.0.0.1")) == ["frpc-a", "frpc-b"]
        assert names(query.by_server_address("10.0.0.2")) == ["frpc-c"]
        assert query.by_server_address("192.0.2.1") == []

    def test_by_server_address_requires_value(self, query, indexed):
        with pytest.raises(ValueError):
            query.by_server_address("")

    def test_by_tag_key_and_value(self, query, tags, indexed):
        """A key:value query narrows to exact values, a bare key matches any value."""
        tags.add_tag(str(indexed["frpc-a.toml"]), "env", "prod")
        tags.add_tag(str(indexed["frpc-b.toml"]), "env", "prod")
        tags.add_tag(str(indexed["frpc-c.toml"]), "env", "staging")

        assert names(query.by_tag("env:prod")) == ["frpc-a", "frpc-b"]
        assert names(query.by_tag("env", "prod")) == ["frpc-a", "frpc-b"]
        assert names(query.by_tag("env")) == ["frpc-a", "frpc-b", "frpc-c"]
        assert query.by_tag("region") == []

    def test_by_tag_requires_key(self, query, indexed):
        with pytest.raises(ValueError):
            query.by_tag(":prod")

    def test_by_name(self, query, indexed):
        assert names(query.by_name("frpc")) == ["frpc-a", "frpc-b", "frpc-c"]
        assert names(query.by_name("vis")) == ["visitor"]

    def test_by_filter_expression(self, query, indexed):
        assert names(query.by_filter("kind:server")) == ["frps"]
        assert names(query.by_filter(TargetFilter.parse("all"))) == names(query.all())

    def test_deleted_file_disappears_after_reconcile(self, indexer, query, indexed):
        """Deleted configs drop out of query results once reconciled."""
        indexed["frpc-b.toml"].unlink()

        indexer.reconcile()

        assert query.get(str(indexed["frpc-b.toml"])) is None
        assert names(query.by_kind(ConfigKind.CLIENT)) == ["frpc-a", "frpc-c"]

    def test_auto_refresh_picks_up_new_files(self, query, indexed, write_config):
        """Queries refresh the index before answering."""
        write_config("frpc-new.toml", client_config("10.0.0.1"))

        assert names(query.by_server_address("10.0.0.1")) == ["frpc-a", "frpc-b", "frpc-new"]

    def test_auto_refresh_disabled(self, settings, indexer, indexed, write_config):
        engine = QueryEngine(settings.model_copy(update={"auto_refresh": False}), indexer)
        write_config("frpc-new.toml", client_config())

        assert "frpc-new" not in names(engine.all())

    def test_total_proxy_count(self, query, indexed):
        # 2 + 1 + 3 proxies and one visitor
        assert query.total_proxy_count() == 7

    def test_aggregate_stats(self, query, indexed):
        stats = query.aggregate_stats()

        assert stats.total == 5
        assert stats.servers == 1
        assert stats.clients == 3
        assert stats.visitors == 1
        assert stats.proxies == 7
        assert stats.size_bytes > 0
        assert "Total configs: 5" in stats.summary()

    def test_empty_index(self, query):
        assert query.all() == []
        assert query.aggregate_stats().total == 0

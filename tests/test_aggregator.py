import asyncio
from unittest.mock import AsyncMock, patch

from library_mirror.core.aggregator import Aggregator

from fakes import FakeSource, owned


class TestAggregate:
    def test_first_seen_wins(self):
        source = FakeSource(owned={
            "A": owned((1, "One"), (2, "Two from A"), (3, "Three")),
            "B": owned((2, "Two from B"), (3, "Three from B"), (4, "Four")),
        })

        result = asyncio.run(Aggregator(source, account_delay=0).aggregate(["A", "B"]))

        assert set(result.records) == {1, 2, 3, 4}
        assert result.records[2]["name"] == "Two from A"
        assert result.records[4]["name"] == "Four"
        assert result.failed_accounts == []
        assert result.responded_accounts == 2

    def test_accounts_are_fetched_in_order(self):
        source = FakeSource(owned={"A": owned((1, "One")), "B": owned((2, "Two")), "C": []})
        asyncio.run(Aggregator(source, account_delay=0).aggregate(["C", "A", "B"]))
        assert source.owned_calls == ["C", "A", "B"]

    def test_failed_account_degrades_to_responders(self):
        source = FakeSource(owned={"A": None, "B": owned((7, "Seven"))})

        result = asyncio.run(Aggregator(source, account_delay=0).aggregate(["A", "B"]))

        assert set(result.records) == {7}
        assert result.failed_accounts == ["A"]
        assert result.responded_accounts == 1

    def test_all_accounts_failing_yields_empty_set(self):
        source = FakeSource(owned={})
        result = asyncio.run(Aggregator(source, account_delay=0).aggregate(["A", "B"]))
        assert result.records == {}
        assert result.failed_accounts == ["A", "B"]

    def test_delay_between_accounts_only(self):
        source = FakeSource(owned={"A": [], "B": [], "C": []})
        with patch("library_mirror.core.aggregator.asyncio.sleep", new=AsyncMock()) as sleep:
            asyncio.run(Aggregator(source, account_delay=0.3).aggregate(["A", "B", "C"]))
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.3)

    def test_each_invocation_starts_clean(self):
        source = FakeSource(owned={"A": owned((1, "One")), "B": owned((2, "Two"))})
        aggregator = Aggregator(source, account_delay=0)

        first = asyncio.run(aggregator.aggregate(["A"]))
        second = asyncio.run(aggregator.aggregate(["B"]))

        assert set(first.records) == {1}
        assert set(second.records) == {2}

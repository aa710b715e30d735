"""Tests for pipe-mode actions and the action chain."""

import logging
import random
from typing import List

import pytest
from fluxmux.actions import (
    ActionChain, AggregateAction, FilterAction, LimitAction, NormalizeAction, PipeAction,
    SampleAction, TransformAction, ValidateAction, parse_aggregate_spec,
)
from fluxmux.common import ConfigurationError
from fluxmux.core import Format, Message


async def run_all(chain: ActionChain, values) -> List:
    out = []
    for value in values:
        out.extend(m.decoded() for m in await chain.run(Message.from_value(value)))
    out.extend(m.decoded() for m in await chain.finalize())
    return out


class Explode(PipeAction):
    """Emits each element of a list value as its own message."""

    def __init__(self):
        super().__init__("explode")

    async def execute(self, message):
        return [Message.from_value(v) for v in message.decoded()]


class Broken(PipeAction):
    def __init__(self):
        super().__init__("broken")

    async def execute(self, message):
        raise RuntimeError("boom")


class TestFilterAndTransform:
    """Test per-message reshaping actions."""

    @pytest.mark.asyncio
    async def test_filter(self):
        action = FilterAction("temp>30")
        assert await action.execute(Message.from_value({"temp": 31})) != []
        assert await action.execute(Message.from_value({"temp": 10})) == []

    @pytest.mark.asyncio
    async def test_filter_passes_undecodable(self):
        message = Message(payload=b"\xff", format=Format.BINARY)
        assert await FilterAction("a==1").execute(message) == [message]

    def test_filter_rejects_bad_expression(self):
        with pytest.raises(ConfigurationError):
            FilterAction("just words")

    @pytest.mark.asyncio
    async def test_transform_assigns_fields(self):
        action = TransformAction("f=c*9/5+32, unit='F'")
        [out] = await action.execute(Message.from_value({"c": 100}))
        assert out.decoded() == {"c": 100, "f": 212.0, "unit": "F"}
        assert out.payload == b'{"c":100,"f":212.0,"unit":"F"}'

    @pytest.mark.asyncio
    async def test_transform_uses_original_values(self):
        """Test that later assignments see the value before this transform."""
        action = TransformAction("a=a+1, b=a")
        [out] = await action.execute(Message.from_value({"a": 1}))
        assert out.decoded() == {"a": 2.0, "b": 1}

    @pytest.mark.asyncio
    async def test_transform_skips_unresolved(self):
        [out] = await TransformAction("x=missing").execute(Message.from_value({"a": 1}))
        assert out.decoded() == {"a": 1}

    @pytest.mark.asyncio
    async def test_transform_passes_non_objects(self):
        message = Message.from_value([1, 2])
        assert await TransformAction("x=1").execute(message) == [message]


class TestAggregate:
    """Test grouping and summary records."""

    def test_parse_spec(self):
        assert parse_aggregate_spec("group_by=city;sum=v;avg=v") == ("city", [("sum", "v"), ("avg", "v")])
        assert parse_aggregate_spec(None) == (None, [("count", "")])
        assert parse_aggregate_spec("by=k,max=v") == ("k", [("max", "v")])

    def test_parse_spec_rejects_unknown_operation(self):
        with pytest.raises(ConfigurationError):
            parse_aggregate_spec("median=v")

    @pytest.mark.asyncio
    async def test_holds_until_finalize(self):
        action = AggregateAction.from_spec("sum=v")
        assert await action.execute(Message.from_value({"v": 1})) == []
        [summary] = await action.finalize()
        assert summary.decoded() == {"sum_v": 1.0}

    @pytest.mark.asyncio
    async def test_groups_in_first_seen_order(self):
        chain = ActionChain([AggregateAction("city", [
            ("count", ""), ("sum", "v"), ("avg", "v"), ("min", "v"), ("max", "v"),
        ])])
        values = [
            {"city": "b", "v": 4},
            {"city": "a", "v": 1},
            {"city": "b", "v": 6},
            {"v": 10},
        ]
        results = await run_all(chain, values)

        assert results == [
            {"city": "b", "count": 2.0, "sum_v": 10.0, "avg_v": 5.0, "min_v": 4.0, "max_v": 6.0},
            {"city": "a", "count": 1.0, "sum_v": 1.0, "avg_v": 1.0, "min_v": 1.0, "max_v": 1.0},
            {"city": "_default_", "count": 1.0, "sum_v": 10.0, "avg_v": 10.0, "min_v": 10.0, "max_v": 10.0},
        ]

    @pytest.mark.asyncio
    async def test_empty_numeric_set(self):
        """Test that avg/min/max of no numbers are null and sum is zero."""
        action = AggregateAction(None, [("sum", "v"), ("avg", "v"), ("min", "v"), ("max", "v")])
        await action.execute(Message.from_value({"v": "text"}))
        [summary] = await action.finalize()
        assert summary.decoded() == {"sum_v": 0.0, "avg_v": None, "min_v": None, "max_v": None}

    @pytest.mark.asyncio
    async def test_nothing_seen_emits_nothing(self):
        assert await AggregateAction().finalize() == []

    @pytest.mark.asyncio
    async def test_group_sums_add_up_to_total(self):
        """Test that per-group sums and counts add up to the overall figures."""
        rng = random.Random(7)
        values = [{"g": rng.choice("xyz"), "v": rng.randint(-50, 50)} for _ in range(200)]

        grouped = await run_all(ActionChain([AggregateAction("g", [("sum", "v"), ("count", "")])]), values)

        assert sum(r["sum_v"] for r in grouped) == pytest.approx(sum(v["v"] for v in values))
        assert sum(r["count"] for r in grouped) == len(values)
        assert len({r["g"] for r in grouped}) == len(grouped)


class TestSchemaActions:
    """Test normalize and validate."""

    @pytest.mark.asyncio
    async def test_normalize_keeps_schema_fields_in_order(self, schema_file):
        action = NormalizeAction(schema_file)
        [out] = await action.execute(Message.from_value({"extra": 1, "name": "n", "id": 3}))
        assert list(out.decoded().items()) == [("id", 3), ("name", "n")]

    @pytest.mark.asyncio
    async def test_normalize_without_schema_passes(self):
        message = Message.from_value({"a": 1})
        assert await NormalizeAction(None).execute(message) == [message]

    @pytest.mark.asyncio
    async def test_validate(self, schema_file):
        action = ValidateAction(schema_file)
        assert len(await action.execute(Message.from_value({"id": 1, "name": "x"}))) == 1
        assert await action.execute(Message.from_value({"id": 1})) == []

    @pytest.mark.asyncio
    async def test_validate_logs_validation_category(self, schema_file, caplog):
        with caplog.at_level(logging.WARNING):
            await ValidateAction(schema_file).execute(Message.from_value({"name": "x"}))
        assert caplog.records[-1].extra_fields["error_category"] == "validation"


class TestLimitAndSample:
    """Test counting actions."""

    @pytest.mark.asyncio
    async def test_limit(self):
        results = await run_all(ActionChain([LimitAction(2)]), range(5))
        assert results == [0, 1]

    @pytest.mark.asyncio
    async def test_limit_zero(self):
        assert await run_all(ActionChain([LimitAction(0)]), range(3)) == []

    @pytest.mark.asyncio
    async def test_sample_every_nth(self):
        results = await run_all(ActionChain([SampleAction(3)]), range(1, 10))
        assert results == [3, 6, 9]

    def test_invalid_parameters(self):
        with pytest.raises(ConfigurationError):
            LimitAction(-1)
        with pytest.raises(ConfigurationError):
            SampleAction(0)


class TestActionChain:
    """Test fan-out, failure isolation and finalize propagation."""

    @pytest.mark.asyncio
    async def test_fan_out_is_depth_first(self):
        chain = ActionChain([Explode(), TransformAction("y=x*10")])
        out = await chain.run(Message.from_value([{"x": 1}, {"x": 2}]))
        assert [m.decoded() for m in out] == [{"x": 1, "y": 10.0}, {"x": 2, "y": 20.0}]

    @pytest.mark.asyncio
    async def test_failing_action_drops_branch(self):
        chain = ActionChain([Broken(), LimitAction(5)])
        assert await chain.run(Message.from_value(1)) == []

    @pytest.mark.asyncio
    async def test_finalize_output_skips_later_actions(self):
        """Test that aggregate results are not limited by a later action."""
        chain = ActionChain([AggregateAction("g", [("count", "")]), LimitAction(1)])
        results = await run_all(chain, [{"g": "a"}, {"g": "b"}, {"g": "c"}])
        assert results == [
            {"g": "a", "count": 1.0},
            {"g": "b", "count": 1.0},
            {"g": "c", "count": 1.0},
        ]

    @pytest.mark.asyncio
    async def test_filter_before_aggregate(self):
        chain = ActionChain([FilterAction("v>2"), AggregateAction(None, [("sum", "v")])])
        results = await run_all(chain, [{"v": 1}, {"v": 3}, {"v": 5}])
        assert results == [{"sum_v": 8.0}]

import functools
import gc
import logging
import weakref
from typing import Annotated

import pytest

from methodstats.common.models import CallSite, MethodAction, MetricConfig, Outcome
from methodstats.tags.descriptor import AddAsTag, build_descriptor
from methodstats.tags.resolver import TagResolver, captured_arguments, report_invalid_tags


class OrderService:
    def place(self, order_id: Annotated[int, AddAsTag("order.id")], note: str = "n/a"):
        return order_id

    def lookup(self, region, *, tenant: Annotated[str, AddAsTag("tenant")] = "acme"):
        return region


def _site(func) -> CallSite:
    return CallSite.from_callable(func)


def test_method_name_derived_from_declaring_type() -> None:
    tags = TagResolver().resolve(MetricConfig(), _site(OrderService.place))
    assert tags == {"method.name": "orderservice_place"}


def test_method_name_for_module_function_uses_module() -> None:
    site = CallSite.from_parts("shop.billing", "charge")
    assert TagResolver().method_name(MetricConfig(), site) == "shop_billing_charge"


def test_explicit_method_name_is_normalized() -> None:
    config = MetricConfig(method_name="Orders.Place")
    tags = TagResolver().resolve(config, _site(OrderService.place))
    assert tags["method.name"] == "orders_place"


def test_outcome_and_action_tags() -> None:
    config = MetricConfig(action=MethodAction.CREATE)
    tags = TagResolver().resolve(
        config, _site(OrderService.place), outcome=Outcome.ERROR
    )
    assert tags["method.outcome"] == "ERROR"
    assert tags["method.action"] == "CREATE"


def test_no_outcome_tag_without_outcome() -> None:
    tags = TagResolver().resolve(MetricConfig(), _site(OrderService.place))
    assert "method.outcome" not in tags
    assert "method.action" not in tags


def test_additional_tags_are_merged() -> None:
    config = MetricConfig(additional_tags="region,us-east,tier,gold")
    tags = TagResolver().resolve(config, _site(OrderService.place))
    assert tags["region"] == "us-east"
    assert tags["tier"] == "gold"


def test_odd_additional_tags_are_skipped_without_logging(caplog) -> None:
    config = MetricConfig(additional_tags="region,us-east,tier")
    with caplog.at_level(logging.ERROR, logger="methodstats"):
        tags = TagResolver().resolve(config, _site(OrderService.place), outcome=Outcome.SUCCESS)
    assert tags == {"method.name": "orderservice_place", "method.outcome": "SUCCESS"}
    assert config.tag_error is not None
    assert config.tag_pairs == ()
    assert caplog.records == []


def test_report_invalid_tags_logs_once_per_call(caplog) -> None:
    site = _site(OrderService.place)
    with caplog.at_level(logging.ERROR, logger="methodstats"):
        assert report_invalid_tags(MetricConfig(additional_tags="region"), site) is True
        assert report_invalid_tags(MetricConfig(additional_tags="region,eu"), site) is False
    assert [r.getMessage() for r in caplog.records] == ["methodstats_additional_tags_invalid"]
    assert caplog.records[0].call_site == site.key


def test_additional_tags_are_parsed_once_at_construction() -> None:
    config = MetricConfig(additional_tags=" region , eu ,")
    assert config.tag_pairs == (("region", "eu"),)
    assert config.tag_error is None
    assert config == MetricConfig(additional_tags=" region , eu ,")


def test_same_class_name_in_different_modules_can_be_qualified() -> None:
    first = CallSite.from_parts("shop.orders", "Service.get")
    second = CallSite.from_parts("shop.billing", "Service.get")
    config = MetricConfig()

    assert TagResolver().method_name(config, first) == TagResolver().method_name(config, second)

    qualified = TagResolver(qualify_with_module=True)
    assert qualified.method_name(config, first) == "shop_orders_service_get"
    assert qualified.method_name(config, second) == "shop_billing_service_get"
    assert qualified.method_name(config, CallSite.from_parts("shop.billing", "charge")) == (
        "shop_billing_charge"
    )


def test_captured_arguments_from_positional_keyword_and_default() -> None:
    descriptor = build_descriptor(OrderService.place)
    service = OrderService()
    site = _site(OrderService.place)

    positional = TagResolver().resolve(MetricConfig(), site, descriptor, (service, 42), {})
    keyword = TagResolver().resolve(
        MetricConfig(), site, descriptor, (service,), {"order_id": 7}
    )
    assert positional["order.id"] == "42"
    assert keyword["order.id"] == "7"

    lookup = build_descriptor(OrderService.lookup)
    defaults = TagResolver().resolve(
        MetricConfig(), _site(OrderService.lookup), lookup, (service, "eu"), {}
    )
    assert defaults["tenant"] == "acme"


def test_missing_argument_is_skipped() -> None:
    descriptor = build_descriptor(OrderService.place)
    assert list(captured_arguments(descriptor, (), {})) == []


def test_precedence_captured_over_additional_over_derived() -> None:
    def handler(region: Annotated[str, AddAsTag("region")]):
        return region

    config = MetricConfig(additional_tags="method.name,overridden,region,static")
    tags = TagResolver().resolve(
        config, _site(handler), build_descriptor(handler), ("runtime",), {}
    )
    assert tags["method.name"] == "overridden"
    assert tags["region"] == "runtime"


def test_explicit_tag_params_override_annotations() -> None:
    descriptor = build_descriptor(OrderService.place, {"order_id": "id", "note": "note"})
    assert [(entry.index, entry.tag_name) for entry in descriptor] == [(1, "id"), (2, "note")]


def test_descriptor_rejects_unknown_and_variadic_parameters() -> None:
    def handler(a, *rest, **extra):
        return a

    with pytest.raises(ValueError):
        build_descriptor(handler, {"missing": "tag"})
    with pytest.raises(ValueError):
        build_descriptor(handler, {"rest": "tag"})


def test_descriptor_skips_empty_tag_names() -> None:
    def handler(a: Annotated[int, AddAsTag("")], b):
        return a

    assert build_descriptor(handler, {"b": ""}) == ()


def test_descriptor_does_not_keep_function_alive() -> None:
    def make_handler():
        def handler(order_id: Annotated[int, AddAsTag("order.id")]):
            return order_id

        return handler

    handler = make_handler()
    assert [entry.tag_name for entry in build_descriptor(handler)] == ["order.id"]
    ref = weakref.ref(handler)
    del handler
    gc.collect()
    assert ref() is None


class Handler:
    def __call__(self, region: Annotated[str, AddAsTag("region")], amount: int = 0):
        return amount


def charge(amount: int, currency: Annotated[str, AddAsTag("currency")] = "usd"):
    return amount


def test_partial_uses_wrapped_function_name() -> None:
    first = functools.partial(charge, currency="eur")
    second = functools.partial(functools.partial(charge), 10)

    assert _site(first) == _site(charge)
    assert _site(second).key == _site(charge).key
    assert TagResolver().method_name(MetricConfig(), _site(first)).endswith("_charge")
    assert "partial" not in _site(first).key
    assert [entry.tag_name for entry in build_descriptor(first)] == ["currency"]


def test_callable_instance_named_after_its_class() -> None:
    first = _site(Handler())
    second = _site(Handler())

    assert first == second
    assert first.qualified_name == "Handler.__call__"
    assert TagResolver().method_name(MetricConfig(), first) == "handler___call__"
    assert "0x" not in first.key
    assert [entry.tag_name for entry in build_descriptor(Handler())] == ["region"]

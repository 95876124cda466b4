"""
Tests for similarity/confidence scoring and PromQL templates.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from promql_cache.scoring import confidence, cosine_similarity, historical_accuracy
from promql_cache.templates import canonicalize, placeholders, resolve, templatize


def test_cosine_similarity():
    assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
    assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
    assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)
    assert cosine_similarity([3, 4], [6, 8]) == pytest.approx(1.0)
    assert cosine_similarity([0, 0], [1, 0]) == 0.0


def test_cold_entry_scores_half_its_similarity():
    assert historical_accuracy(0, 0) == pytest.approx(0.5)
    assert confidence(0.9, 0, 0) == pytest.approx(0.45)


def test_one_success_makes_an_exact_repeat_trustworthy():
    assert confidence(1.0, 1, 0) == pytest.approx(2 / 3)


def test_negative_similarity_never_gives_negative_confidence():
    assert confidence(-0.5, 10, 0) == 0.0


@given(
    similarity=st.floats(min_value=0.01, max_value=1.0),
    successes=st.integers(min_value=0, max_value=10_000),
    failures=st.integers(min_value=0, max_value=10_000),
)
def test_confidence_strictly_increases_with_successes(similarity, successes, failures):
    assert confidence(similarity, successes + 1, failures) > confidence(similarity, successes, failures)


@given(
    similarity=st.floats(min_value=0.0, max_value=1.0),
    successes=st.integers(min_value=0, max_value=10_000),
    failures=st.integers(min_value=0, max_value=10_000),
)
def test_confidence_is_bounded_by_similarity(similarity, successes, failures):
    assert 0.0 <= confidence(similarity, successes, failures) <= similarity


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("  Show me CPU   usage\tfor checkout-service? ", "show me cpu usage for checkout-service"),
        ("Error rate!", "error rate"),
        ("ＣＰＵ usage", "cpu usage"),
        ("latency...", "latency"),
    ],
)
def test_canonicalize(raw, expected):
    assert canonicalize(raw) == expected


def test_placeholders_and_resolve():
    template = 'up{namespace="{{namespace}}", job="{{ job }}"}[{{time_range}}]'

    assert placeholders(template) == {"namespace", "job", "time_range"}
    assert resolve(template, {"namespace": "shop", "job": "api", "time_range": "5m"}) == (
        'up{namespace="shop", job="api"}[5m]'
    )
    assert resolve(template, {"namespace": "shop"}) is None
    assert resolve("sum(up)", {}) == "sum(up)"


def test_resolve_escapes_quotes_and_backslashes():
    template = 'up{job="{{job}}"}'

    assert resolve(template, {"job": 'a"b\\c'}) == 'up{job="a\\"b\\\\c"}'
    assert resolve(template, {"job": 'api"} or up{job="'}) == 'up{job="api\\"} or up{job=\\""}'
    assert resolve(template, {"job": "two\nlines"}) == 'up{job="two\\nlines"}'


def test_templatize_replaces_context_values_and_time_range():
    promql = 'sum(rate(http_requests_total{namespace="shop",service!="checkout"}[5m])) / sum(x{a=~"shop"}[5m:1m])'

    template = templatize(promql, {"namespace": "shop", "service": "checkout"}, "5m")

    assert template == (
        'sum(rate(http_requests_total{namespace="{{namespace}}",service!="{{service}}"}[{{time_range}}]))'
        ' / sum(x{a=~"{{namespace}}"}[{{time_range}}:1m])'
    )


def test_templatize_prefers_longest_value():
    promql = 'up{service="checkout-service",team="checkout"}'

    template = templatize(promql, {"team": "checkout", "service": "checkout-service"})

    assert template == 'up{service="{{service}}",team="{{team}}"}'


def test_templatize_leaves_metric_names_alone():
    assert templatize("sum(shop_orders_total)", {"namespace": "shop"}) == "sum(shop_orders_total)"

import pytest

from src.batch import options as opt
from src.batch.models import Request
from src.batch.options import (
    EngineOptions,
    apply_probe_overrides,
    build_options,
    is_reachable,
    merge_header_lines,
)
from src.config import ProxySettings
from src.network.proxy import StaticProxyConfigProvider

PROXY = ProxySettings(address="10.0.0.1", port=3128, username="bob", password="s3cret")


@pytest.fixture
def defaults() -> EngineOptions:
    return EngineOptions()


def test_default_options_contract(defaults):
    options = build_options(Request("http://example.com/"), defaults)

    assert options[opt.VERIFY_PEER] is False
    assert options[opt.VERIFY_HOST] is False
    assert options[opt.RETURN_TRANSFER] is True
    assert options[opt.CONNECT_TIMEOUT] == 15
    assert options[opt.TIMEOUT] == 86400
    assert options[opt.FOLLOW_LOCATION] is True
    assert options[opt.MAX_REDIRS] == 5
    assert options[opt.URL] == "http://example.com/"
    assert options[opt.METHOD] == "GET"
    assert opt.HTTPHEADER not in options
    assert opt.PROXY not in options


def test_redirects_not_followed_when_disabled():
    options = build_options(Request("http://example.com/"), EngineOptions(follow_redirects=False))

    assert opt.FOLLOW_LOCATION not in options
    assert opt.MAX_REDIRS not in options


def test_per_request_options_override_defaults(defaults):
    request = Request("http://example.com/", options={opt.TIMEOUT: 30, opt.MAX_REDIRS: 1})
    options = build_options(request, defaults)

    assert options[opt.TIMEOUT] == 30
    assert options[opt.MAX_REDIRS] == 1
    assert options[opt.CONNECT_TIMEOUT] == 15


def test_url_option_always_comes_from_the_request(defaults):
    request = Request("http://example.com/real", options={opt.URL: "http://elsewhere/"})

    assert build_options(request, defaults)[opt.URL] == "http://example.com/real"


def test_invalid_url_leaves_url_option_empty(defaults, caplog):
    options = build_options(Request("not a url"), defaults)

    assert options[opt.URL] == ""
    assert "Invalid URL" in caplog.text


def test_body_switches_to_post(defaults):
    options = build_options(Request("http://example.com/", method="PUT", body=b"payload"), defaults)

    assert options[opt.METHOD] == "POST"
    assert options[opt.POST] is True
    assert options[opt.POSTFIELDS] == b"payload"


def test_headers_merge_engine_and_request_lines():
    defaults = EngineOptions(headers=["Accept: text/html", "X-Trace: 1"])
    request = Request("http://example.com/", headers=["accept: application/json"])

    options = build_options(request, defaults)

    assert options[opt.HEADER] is False
    assert options[opt.HTTPHEADER] == ["accept: application/json", "X-Trace: 1"]


def test_single_header_string_is_one_line(defaults):
    request = Request("http://example.com/", headers="X-A: 1")

    assert request.headers == ("X-A: 1",)
    assert build_options(request, defaults)[opt.HTTPHEADER] == ["X-A: 1"]
    assert EngineOptions(headers="X-B: 2").headers == ["X-B: 2"]


def test_proxy_injected_for_external_destination(defaults):
    provider = StaticProxyConfigProvider(proxy=PROXY, internal_addresses=frozenset({"storage.local"}))

    options = build_options(Request("https://example.com/"), defaults, provider)

    assert options[opt.PROXY] == "10.0.0.1"
    assert options[opt.PROXY_PORT] == 3128
    assert options[opt.PROXY_AUTH] == opt.PROXY_AUTH_BASIC
    assert options[opt.PROXY_USERPWD] == "bob:s3cret"


def test_proxy_skipped_for_internal_destination(defaults):
    provider = StaticProxyConfigProvider(proxy=PROXY, internal_addresses=frozenset({"STORAGE.local"}))

    options = build_options(Request("http://storage.local/api/status"), defaults, provider)

    for key in (opt.PROXY, opt.PROXY_PORT, opt.PROXY_AUTH, opt.PROXY_USERPWD):
        assert key not in options


def test_proxy_without_username_has_no_credentials(defaults):
    provider = StaticProxyConfigProvider(proxy=ProxySettings(address="10.0.0.1", port=8080))

    options = build_options(Request("https://example.com/"), defaults, provider)

    assert options[opt.PROXY] == "10.0.0.1"
    assert opt.PROXY_USERPWD not in options


def test_build_options_is_idempotent(defaults):
    defaults.merge_headers(["X-Trace: 1"])
    provider = StaticProxyConfigProvider(proxy=PROXY)
    request = Request("https://example.com/", body={"a": 1}, headers=["X-Req: 2"])

    first = build_options(request, defaults, provider)
    first[opt.HTTPHEADER].append("X-Leak: 1")
    first[opt.TIMEOUT] = 1
    second = build_options(request, defaults, provider)

    assert second == build_options(request, defaults, provider)
    assert "X-Leak: 1" not in second[opt.HTTPHEADER]
    assert second[opt.TIMEOUT] == 86400


def test_merge_options_layers_new_values_over_existing():
    defaults = EngineOptions()
    defaults.merge_options({opt.TIMEOUT: 60, opt.USERPWD: "a:b"})
    defaults.merge_options({opt.USERPWD: "c:d"})

    assert defaults.options[opt.TIMEOUT] == 60
    assert defaults.options[opt.USERPWD] == "c:d"
    assert defaults.options[opt.CONNECT_TIMEOUT] == 15
    assert defaults.timeout == 60.0


def test_merge_header_lines_replaces_same_named_headers():
    merged = merge_header_lines(["Accept: */*", "X-One: 1"], ["x-one: 2", "X-Two: 2"])

    assert merged == ["Accept: */*", "x-one: 2", "X-Two: 2"]


def test_from_config_seeds_timeouts(app_config):
    defaults = EngineOptions.from_config(app_config)

    assert defaults.options[opt.CONNECT_TIMEOUT] == app_config.connect_timeout
    assert defaults.options[opt.TIMEOUT] == app_config.timeout


def test_apply_probe_overrides_returns_short_header_only_copy(defaults):
    options = build_options(Request("http://example.com/"), defaults)
    probe = apply_probe_overrides(options)

    assert probe[opt.TIMEOUT] == opt.PROBE_TIMEOUT
    assert probe[opt.CONNECT_TIMEOUT] == opt.PROBE_CONNECT_TIMEOUT
    assert probe[opt.NOBODY] is True
    assert probe[opt.HEADER] is True
    assert options[opt.TIMEOUT] == 86400
    assert opt.NOBODY not in options


@pytest.mark.parametrize(
    "status,expected",
    [(0, False), (199, False), (200, True), (302, True), (399, True), (400, False), (503, False)],
)
def test_is_reachable_boundaries(status, expected):
    assert is_reachable(status) is expected

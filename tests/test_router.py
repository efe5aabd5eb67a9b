"""
Unit tests for the best-match resolver.
Uses pre-built RoutingRule objects without a DB.
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.models.rule import RoutingRule
from app.services.router import (
    MatchRequest,
    SCORE_ABSENT,
    SCORE_EXACT,
    SCORE_QUERY_OPEN,
    SCORE_QUERY_RESTRICTED,
    SCORE_WILDCARD,
    resolve_from_rules,
    score_rule,
    split_host,
)
from app.services.rule_codec import encode
from app.services.selectors import QueryPolicy, Selector

NOW = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_rule(subdomain, path, query_params, target, domain="example.com",
              expires_in=timedelta(days=1), created_offset=timedelta(0)):
    sub = Selector.parse_subdomain(subdomain)
    pth = Selector.parse_path(path)
    policy = QueryPolicy.from_spec(query_params)
    r = RoutingRule()
    r.id = encode(domain, sub, pth, policy)
    r.domain = domain
    r.subdomain = sub.to_column()
    r.path = pth.to_column()
    r.query_policy = policy.to_column()
    r.target = target
    r.expires_at = NOW + expires_in
    r.created_at = NOW - timedelta(days=1) + created_offset
    r.updated_at = r.created_at
    return r


def req(subdomain=None, path=None, keys=(), domain="example.com"):
    return MatchRequest(domain=domain, subdomain=subdomain, path=path, query_keys=frozenset(keys))


SPECIFIC = make_rule("api", "/users", ["id", "page"], "http://users:8080")
CATCH_ALL = make_rule("*", "*", None, "http://default:8080")


class TestSpecificity:
    def test_specific_rule_wins(self):
        result = resolve_from_rules([CATCH_ALL, SPECIFIC], req("api", "/users", {"id", "page"}), NOW)
        assert result is SPECIFIC

    def test_catch_all_for_other_requests(self):
        result = resolve_from_rules([CATCH_ALL, SPECIFIC], req("test", "/anything"), NOW)
        assert result is CATCH_ALL

    def test_subset_of_allowed_keys_matches(self):
        result = resolve_from_rules([CATCH_ALL, SPECIFIC], req("api", "/users", {"page"}), NOW)
        assert result is SPECIFIC

    def test_exact_subdomain_beats_wildcard_subdomain(self):
        wild = make_rule("*", "/users", None, "http://wild")
        exact = make_rule("api", "/users", None, "http://exact")
        assert resolve_from_rules([wild, exact], req("api", "/users"), NOW) is exact

    def test_restricted_query_beats_open_query(self):
        open_rule = make_rule("api", "/users", None, "http://open")
        closed = make_rule("api", "/users", [], "http://closed")
        assert resolve_from_rules([open_rule, closed], req("api", "/users"), NOW) is closed

    def test_scores(self):
        assert score_rule(SPECIFIC, req("api", "/users", {"id"})) == (
            SCORE_EXACT + SCORE_EXACT + SCORE_QUERY_RESTRICTED
        )
        assert score_rule(CATCH_ALL, req("x", "/y", {"z"})) == (
            SCORE_WILDCARD + SCORE_WILDCARD + SCORE_QUERY_OPEN
        )
        bare = make_rule(None, None, [], "http://bare")
        assert score_rule(bare, req()) == SCORE_ABSENT + SCORE_ABSENT + SCORE_QUERY_RESTRICTED


class TestHardExclusion:
    def test_unlisted_key_excludes_only_candidate(self):
        result = resolve_from_rules([SPECIFIC], req("api", "/users", {"id", "sort"}), NOW)
        assert result is None

    def test_unlisted_key_falls_through_to_catch_all(self):
        result = resolve_from_rules([SPECIFIC, CATCH_ALL], req("api", "/users", {"sort"}), NOW)
        assert result is CATCH_ALL

    def test_allow_none_rejects_any_key(self):
        rule = make_rule("api", "/users", [], "http://closed")
        assert resolve_from_rules([rule], req("api", "/users", {"id"}), NOW) is None

    def test_none_subdomain_rejects_present_subdomain(self):
        rule = make_rule(None, "*", None, "http://apex")
        assert resolve_from_rules([rule], req("www", "/"), NOW) is None
        assert resolve_from_rules([rule], req(None, "/"), NOW) is rule

    def test_exact_subdomain_mismatch(self):
        rule = make_rule("api", "*", None, "http://api")
        assert resolve_from_rules([rule], req("www", "/"), NOW) is None

    def test_exact_path_mismatch(self):
        rule = make_rule("*", "/users", None, "http://users")
        assert resolve_from_rules([rule], req("api", "/orders"), NOW) is None
        assert resolve_from_rules([rule], req("api", None), NOW) is None

    @pytest.mark.parametrize("path", [None, "", "/", "!"])
    def test_none_path_matches_root_forms(self, path):
        rule = make_rule("*", None, None, "http://root")
        assert resolve_from_rules([rule], req("api", path), NOW) is rule

    def test_none_path_rejects_real_path(self):
        rule = make_rule("*", None, None, "http://root")
        assert resolve_from_rules([rule], req("api", "/users"), NOW) is None


class TestCandidateFilter:
    def test_other_domain_never_considered(self):
        other = make_rule("*", "*", None, "http://other", domain="other.com")
        assert resolve_from_rules([other], req("api", "/x"), NOW) is None

    def test_expired_rule_excluded(self):
        expired = make_rule("*", "*", None, "http://old", expires_in=timedelta(seconds=-1))
        assert resolve_from_rules([expired], req("api", "/x"), NOW) is None

    def test_expiry_equal_to_now_is_inactive(self):
        boundary = make_rule("*", "*", None, "http://edge", expires_in=timedelta(0))
        assert resolve_from_rules([boundary], req("api", "/x"), NOW) is None

    def test_no_rules(self):
        assert resolve_from_rules([], req("api", "/x"), NOW) is None


class TestTieBreak:
    def test_cross_dimension_tie_prefers_newest(self):
        older = make_rule("api", "*", None, "http://older", created_offset=timedelta(minutes=1))
        newer = make_rule("*", "/users", None, "http://newer", created_offset=timedelta(minutes=2))
        request = req("api", "/users")
        assert score_rule(older, request) == score_rule(newer, request)
        assert resolve_from_rules([older, newer], request, NOW) is newer
        assert resolve_from_rules([newer, older], request, NOW) is newer

    def test_same_created_at_prefers_smallest_id(self):
        a = make_rule("api", "*", None, "http://a")
        b = make_rule("*", "/users", None, "http://b")
        expected = min((a, b), key=lambda r: r.id)
        assert resolve_from_rules([a, b], req("api", "/users"), NOW) is expected
        assert resolve_from_rules([b, a], req("api", "/users"), NOW) is expected


class TestSplitHost:
    @pytest.mark.parametrize("host,expected", [
        ("example.com", ("example.com", None)),
        ("api.example.com", ("example.com", "api")),
        ("a.b.example.com", ("example.com", "a.b")),
        ("api.example.com:8443", ("example.com", "api")),
        ("localhost", ("localhost", None)),
    ])
    def test_split(self, host, expected):
        assert split_host(host) == expected

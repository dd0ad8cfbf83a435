"""Tests for the page access table, path matching and page gates."""

import pytest

from rahat_dashboard.auth.access import (
    ADMIN_GATE,
    COLLECTOR_GATE,
    DEFAULT_ACCESS,
    ROLE_ACCESS,
    TEHSILDAR_GATE,
    allowed_patterns,
    is_allowed,
    passes_gate,
    path_matches,
)
from rahat_dashboard.auth.roles import RahatRole, stage_display_name


# ── Path matching ────────────────────────────────────────────────────────────

class TestPathMatches:
    def test_exact_match(self):
        assert path_matches("/overview", "/overview")

    def test_wildcard_matches_one_segment(self):
        assert path_matches("/cases/RAHAT-0001", "/cases/[id]")
        assert path_matches("/cases/abc/close", "/cases/[id]/close")

    @pytest.mark.parametrize("path", ["/cases/", "/cases/a/b", "/cases", "/cases/a/close/x", "x/cases/a"])
    def test_wildcard_does_not_span_or_skip_segments(self, path):
        assert not path_matches(path, "/cases/[id]")

    def test_no_prefix_matching_without_wildcard(self):
        assert not path_matches("/cases/123", "/cases")
        assert not path_matches("/", "/overview")

    def test_pattern_metacharacters_are_literal(self):
        assert not path_matches("/casesX1", "/cases.[id]")
        assert path_matches("/cases.1", "/cases.[id]")


# ── Role access table ────────────────────────────────────────────────────────

class TestIsAllowed:
    def test_tehsildar_pages(self):
        role = RahatRole.TEHSILDAR
        assert is_allowed(role, "/")
        assert is_allowed(role, "/ready-to-close")
        assert is_allowed(role, "/cases/123")
        assert is_allowed(role, "/cases/123/close")
        assert not is_allowed(role, "/cases")
        assert not is_allowed(role, "/overview")
        assert not is_allowed(role, "/admin")

    def test_collector_pages(self):
        role = RahatRole.COLLECTOR
        for path in ("/", "/overview", "/cases", "/admin", "/cases/1", "/cases/1/close"):
            assert is_allowed(role, path), path
        assert not is_allowed(role, "/ready-to-close")

    @pytest.mark.parametrize("role", [RahatRole.SDM, RahatRole.OIC, RahatRole.RAHAT_SHAKHA, "additional-collector"])
    def test_roles_without_entry_get_default_pages(self, role):
        assert allowed_patterns(role) == DEFAULT_ACCESS
        assert is_allowed(role, "/")
        assert is_allowed(role, "/cases/42")
        assert not is_allowed(role, "/cases/42/close")
        assert not is_allowed(role, "/overview")

    def test_string_role_resolves_like_enum(self):
        assert is_allowed("collector", "/admin") == is_allowed(RahatRole.COLLECTOR, "/admin")

    @pytest.mark.parametrize(
        "role, path",
        [
            ("not-a-role", "/"),
            (None, "/cases/1"),
            (42, "/"),
            ("collector", None),
            ("collector", 7),
            (RahatRole.TEHSILDAR, ""),
        ],
    )
    def test_never_raises(self, role, path):
        result = is_allowed(role, path)
        assert isinstance(result, bool)

    def test_bad_path_is_denied(self):
        assert is_allowed("collector", None) is False
        assert is_allowed("collector", "") is False

    def test_every_listed_pattern_admits_a_concrete_path(self):
        for role, patterns in ROLE_ACCESS.items():
            for pattern in patterns:
                assert is_allowed(role, pattern.replace("[id]", "x1")), (role, pattern)


# ── Page gates ───────────────────────────────────────────────────────────────

class TestGates:
    def test_empty_gate_admits_everyone(self):
        assert passes_gate([], None)
        assert passes_gate(frozenset(), RahatRole.SDM)

    def test_gate_membership(self):
        assert passes_gate(ADMIN_GATE, RahatRole.COLLECTOR)
        assert passes_gate(COLLECTOR_GATE, "collector")
        assert passes_gate(TEHSILDAR_GATE, RahatRole.TEHSILDAR)
        assert not passes_gate(ADMIN_GATE, RahatRole.TEHSILDAR)
        assert not passes_gate(COLLECTOR_GATE, RahatRole.SDM)

    def test_missing_role_fails_nonempty_gate(self):
        assert not passes_gate(TEHSILDAR_GATE, None)


# ── Stage labels ─────────────────────────────────────────────────────────────

class TestStageLabels:
    def test_known_stage(self):
        assert stage_display_name("sdm_review") == "SDM Review"
        assert stage_display_name("closed") == "Case Closed"

    def test_unknown_stage_is_title_cased(self):
        assert stage_display_name("payment_pending") == "Payment Pending"

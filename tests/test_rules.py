"""Tests for rule matching and default rules."""

from datetime import datetime, timezone

import pytest

from maintainer_firewall.common import Rule, SuggestionType, WebhookEvent
from maintainer_firewall.rules import DEFAULT_RULES, RuleMatcher, seed_default_rules

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_event(event_type="issues", title="", body="") -> WebhookEvent:
    key = "pull_request" if event_type == "pull_request" else "issue"
    return WebhookEvent(
        delivery_id="d-1",
        event_type=event_type,
        action="opened",
        repository_full_name="octo/repo",
        sender_login="octocat",
        payload={"action": "opened", key: {"number": 1, "title": title, "body": body}},
        received_at=NOW,
    )


def make_rule(rule_id, keyword, event_type="issues", kind=SuggestionType.LABEL, value="triage", is_active=True):
    return Rule(
        id=rule_id,
        event_type=event_type,
        keyword=keyword,
        suggestion_type=kind,
        suggestion_value=value,
        reason=f"contains {keyword} keyword",
        is_active=is_active,
        created_at=NOW,
    )


class TestRuleMatcher:
    """Tests for RuleMatcher."""

    def test_every_matching_rule_yields_a_suggestion(self):
        rules = [
            make_rule(1, "urgent", value="priority-high"),
            make_rule(2, "urgent", kind=SuggestionType.COMMENT, value="Fast triage."),
            make_rule(3, "crash", value="bug"),
        ]
        event = make_event(title="URGENT: crash on start")

        suggestions = RuleMatcher().match(event, rules)

        assert [s.rule_id for s in suggestions] == [1, 2, 3]
        assert suggestions[0].suggestion_value == "priority-high"
        assert suggestions[1].suggestion_type == SuggestionType.COMMENT
        assert suggestions[2].keyword == "crash"

    def test_keyword_in_body_matches(self):
        suggestions = RuleMatcher().match(
            make_event(title="Question", body="Is help wanted here?"),
            [make_rule(1, "Help Wanted", value="help-wanted")],
        )
        assert len(suggestions) == 1

    def test_inactive_rules_are_skipped(self):
        rules = [make_rule(1, "urgent", is_active=False), make_rule(2, "urgent")]

        suggestions = RuleMatcher().match(make_event(title="urgent"), rules)

        assert [s.rule_id for s in suggestions] == [2]

    def test_event_type_must_match(self):
        rules = [make_rule(1, "urgent", event_type="pull_request"), make_rule(2, "urgent", event_type="ISSUES")]

        suggestions = RuleMatcher().match(make_event(title="urgent"), rules)

        assert [s.rule_id for s in suggestions] == [2]

    def test_non_matching_keyword(self):
        assert RuleMatcher().match(make_event(title="typo in docs"), [make_rule(1, "urgent")]) == []

    def test_blank_keyword_never_matches(self):
        assert RuleMatcher().match(make_event(title="anything"), [make_rule(1, "   ")]) == []

    def test_keyword_whitespace_is_significant(self):
        rules = [make_rule(1, " fix ", value="bugfix")]

        assert RuleMatcher().match(make_event(title="prefix fixes the build"), rules) == []
        suggestions = RuleMatcher().match(make_event(title="a fix here"), rules)
        assert [s.keyword for s in suggestions] == [" fix "]

    def test_event_without_text(self):
        assert RuleMatcher().match(make_event(), [make_rule(1, "urgent")]) == []

    def test_pull_request_text(self):
        event = make_event(event_type="pull_request", title="Possible duplicate of #3")

        suggestions = RuleMatcher().match(event, [make_rule(1, "duplicate", event_type="pull_request")])

        assert len(suggestions) == 1

    def test_matching_is_pure(self):
        rules = [make_rule(1, "urgent")]
        event = make_event(title="urgent")

        assert RuleMatcher().match(event, rules) == RuleMatcher().match(event, rules)


class TestDefaultRules:
    """Tests for the built-in rule set."""

    def test_default_rules_cover_issues_and_pull_requests(self):
        assert len(DEFAULT_RULES) == 12
        assert {r.event_type for r in DEFAULT_RULES} == {"issues", "pull_request"}
        labels = {r.suggestion_value for r in DEFAULT_RULES if r.suggestion_type == SuggestionType.LABEL}
        assert labels == {"needs-triage", "help-wanted", "priority-high"}

    @pytest.mark.asyncio
    async def test_seed_into_empty_table(self, mock_db, clock):
        inserted = await seed_default_rules(mock_db, clock)

        assert inserted == len(DEFAULT_RULES)
        assert len(await mock_db.list_active_rules("issues")) == 6

    @pytest.mark.asyncio
    async def test_seed_skips_configured_table(self, mock_db, clock):
        mock_db.add_rule("issues", "custom", SuggestionType.LABEL, "custom")

        assert await seed_default_rules(mock_db, clock) == 0
        assert await mock_db.count_rules() == 1

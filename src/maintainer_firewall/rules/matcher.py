"""Keyword rule matching."""

import logging

from ..common import Rule, Suggestion, WebhookEvent
from ..common.payload import extract_text

logger = logging.getLogger("maintainer_firewall.rules")


class RuleMatcher:
    """
    Evaluates an event against maintainer rules.

    A rule matches when it is active, its event_type equals the event's
    (ignoring case), and its keyword occurs in the event's issue or pull
    request title/body (ignoring case). Every matching rule yields its own
    suggestion; there is no first-match short-circuit.
    """

    def match(self, event: WebhookEvent, rules: list[Rule]) -> list[Suggestion]:
        """Return one suggestion per matching rule, in rule order."""
        text = extract_text(event.event_type, event.payload).casefold()
        if not text.strip():
            return []

        event_type = event.event_type.strip().casefold()
        suggestions = []
        for rule in rules:
            if not rule.is_active:
                continue
            if rule.event_type.strip().casefold() != event_type:
                continue
            # Surrounding whitespace is part of the keyword
            keyword = rule.keyword.casefold()
            if not keyword.strip() or keyword not in text:
                continue
            suggestions.append(
                Suggestion(
                    rule_id=rule.id,
                    suggestion_type=rule.suggestion_type,
                    suggestion_value=rule.suggestion_value,
                    reason=rule.reason,
                    keyword=rule.keyword,
                )
            )

        if suggestions:
            logger.debug(
                f"{event.delivery_id}: {len(suggestions)} rule(s) matched "
                f"{[s.rule_id for s in suggestions]}"
            )
        return suggestions


# Global instance
_rule_matcher: RuleMatcher | None = None


def get_rule_matcher() -> RuleMatcher:
    """Get the global rule matcher instance."""
    global _rule_matcher
    if _rule_matcher is None:
        _rule_matcher = RuleMatcher()
    return _rule_matcher

"""Built-in rule set, seeded into an empty rules table on request."""

import logging

from ..common import Clock, RuleCreate, SuggestionType
from ..storage import Database

logger = logging.getLogger("maintainer_firewall.rules")

_KEYWORD_RULES = [
    # (keyword, label, comment, reason)
    (
        "duplicate",
        "needs-triage",
        "Thanks! This may be a duplicate. Please reference related {kind} links.",
        "contains duplicate keyword",
    ),
    (
        "help wanted",
        "help-wanted",
        "Maintainers marked this as help wanted candidate.",
        "contains help wanted keyword",
    ),
    (
        "urgent",
        "priority-high",
        "Marked for fast triage due to urgency signal.",
        "contains urgent keyword",
    ),
]


def _build_default_rules() -> list[RuleCreate]:
    rules = []
    for event_type, kind in (("issues", "issue"), ("pull_request", "PR")):
        for keyword, label, comment, reason in _KEYWORD_RULES:
            rules.append(
                RuleCreate(
                    event_type=event_type,
                    keyword=keyword,
                    suggestion_type=SuggestionType.LABEL,
                    suggestion_value=label,
                    reason=reason,
                )
            )
            rules.append(
                RuleCreate(
                    event_type=event_type,
                    keyword=keyword,
                    suggestion_type=SuggestionType.COMMENT,
                    suggestion_value=comment.format(kind=kind),
                    reason=reason,
                )
            )
    return rules


DEFAULT_RULES: list[RuleCreate] = _build_default_rules()


async def seed_default_rules(db: Database, clock: Clock) -> int:
    """Insert DEFAULT_RULES if no rules exist yet. Returns the number inserted."""
    if await db.count_rules() > 0:
        logger.info("Rules already configured, skipping default rule seed")
        return 0

    now = clock.now()
    for rule in DEFAULT_RULES:
        await db.create_rule(rule, created_at=now)
    logger.info(f"Seeded {len(DEFAULT_RULES)} default rules")
    return len(DEFAULT_RULES)

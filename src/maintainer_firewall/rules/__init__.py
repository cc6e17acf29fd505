"""Rule matching for webhook events."""

from .defaults import DEFAULT_RULES, seed_default_rules
from .matcher import RuleMatcher, get_rule_matcher

__all__ = [
    "DEFAULT_RULES",
    "RuleMatcher",
    "get_rule_matcher",
    "seed_default_rules",
]

"""Package filters."""

from pylerna.filters.chain import apply_filters, apply_filters_with_since
from pylerna.filters.ignore import filter_by_ignore, filter_private, should_ignore
from pylerna.filters.scope import filter_by_scope, match_scope, matches_any, parse_scope
from pylerna.filters.since import filter_by_since, get_changed_packages

__all__ = [
    "apply_filters",
    "apply_filters_with_since",
    "filter_by_ignore",
    "filter_by_scope",
    "filter_by_since",
    "filter_private",
    "get_changed_packages",
    "match_scope",
    "matches_any",
    "parse_scope",
    "should_ignore",
]

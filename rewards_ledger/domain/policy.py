"""Point policy - bonus rules for report authors and resolvers"""

# Admin-assigned quality score range for a report
REPORT_POINTS_MIN = 0
REPORT_POINTS_MAX = 3

SELF_RESOLVE_BONUS = 1
PEER_RESOLVE_BONUS = 2
RESOLVER_BONUS_VALUES = (SELF_RESOLVE_BONUS, PEER_RESOLVE_BONUS)


def resolver_bonus(resolver_id: str, report_author_id: str) -> int:
    """
    Bonus credited to a resolver of a report.

    Closing your own report earns 1 point, closing a colleague's earns 2.
    Computed once when the assignment is created and frozen on it; later
    edits to the report never change an already-frozen bonus.
    """
    return SELF_RESOLVE_BONUS if resolver_id == report_author_id else PEER_RESOLVE_BONUS


def is_valid_report_points(points) -> bool:
    return isinstance(points, int) and not isinstance(points, bool) and REPORT_POINTS_MIN <= points <= REPORT_POINTS_MAX


def is_valid_resolver_bonus(points) -> bool:
    return isinstance(points, int) and not isinstance(points, bool) and points in RESOLVER_BONUS_VALUES

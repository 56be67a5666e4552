"""Page / per-page resolution for property searches."""
from app.exceptions import ValidationError

DEFAULT_PER_PAGE = 60
MAX_PER_PAGE = 200


def resolve_page(page, per_page, default_per_page=DEFAULT_PER_PAGE, max_per_page=MAX_PER_PAGE):
    """
    Turn page/per_page search options into (offset, limit).

    per_page == 0 falls back to the default, values above the maximum are
    clamped. Negative values are rejected.
    """
    page = page or 0
    per_page = per_page or 0

    if page < 0:
        raise ValidationError(f"Invalid page: {page}", 'app.search.invalid_page.app_error')
    if per_page < 0:
        raise ValidationError(f"Invalid per_page: {per_page}", 'app.search.invalid_per_page.app_error')

    limit = min(per_page or default_per_page, max_per_page)
    return page * limit, limit

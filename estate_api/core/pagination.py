"""Page/size query parameters shared by list endpoints (1-based pages)."""

from typing import Optional

from fastapi import Query

from estate_api.core.config import get_settings
from estate_shared.schemas.common import Pagination


def page_params(
    page: int = Query(1, ge=1),
    size: Optional[int] = Query(None, ge=1),
) -> Pagination:
    settings = get_settings()
    return Pagination(page=page, size=min(size or settings.default_page_size, settings.max_page_size))

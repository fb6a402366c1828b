import logging
import math
from typing import List, Union

from sqlalchemy.orm import Session

from pushrelay.schemas.notification import BroadcastTarget, TokenTarget, UserTarget
from pushrelay.services.device_service import DeviceService

logger = logging.getLogger(__name__)

DispatchTarget = Union[TokenTarget, UserTarget, BroadcastTarget]


def resolve_tokens(db: Session, target: DispatchTarget) -> List[str]:
    """Turn a dispatch target into the list of push tokens to address."""
    if isinstance(target, TokenTarget):
        return [target.token]
    if isinstance(target, UserTarget):
        return DeviceService.get_tokens_by_user_id(db, target.user_id)
    if isinstance(target, BroadcastTarget):
        return _resolve_broadcast(db, target.page_size)
    raise TypeError(f"Unsupported dispatch target: {type(target).__name__}")


def _resolve_broadcast(db: Session, page_size: int) -> List[str]:
    # The active set may change between the count and the last page; pages
    # are read as they are at fetch time.
    total = DeviceService.count_active_tokens(db)
    if total == 0:
        return []

    tokens: List[str] = []
    total_pages = math.ceil(total / page_size)
    for page in range(total_pages):
        page_tokens = DeviceService.get_active_tokens_page(db, limit=page_size, offset=page * page_size)
        if not page_tokens:
            continue
        tokens.extend(page_tokens)

    logger.info("Resolved %d broadcast tokens over %d page(s)", len(tokens), total_pages)
    return tokens

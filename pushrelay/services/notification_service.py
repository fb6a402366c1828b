import asyncio
import logging
from typing import Callable, Iterable, List

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from pushrelay.common.constants import PushConstants
from pushrelay.config import MAX_MULTICAST_TOKENS
from pushrelay.schemas.notification import (
    BroadcastTarget,
    DispatchResult,
    PushPayload,
    UserTarget,
)
from pushrelay.services.device_service import DeviceService
from pushrelay.services.push_provider import PushProvider, PushSendError
from pushrelay.services.token_resolver import resolve_tokens

logger = logging.getLogger(__name__)


def chunk(items: List[str], size: int) -> List[List[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def is_dead_token_code(code: str) -> bool:
    """True when the provider says the token will never be deliverable again."""
    return bool(code) and any(marker in code for marker in PushConstants.DEAD_TOKEN_CODE_MARKERS)


class NotificationService:
    """Fans notifications out to push tokens and prunes the ones that are dead."""

    def __init__(
        self,
        provider: PushProvider,
        session_factory: Callable[[], Session],
        batch_size: int = MAX_MULTICAST_TOKENS,
        broadcast_page_size: int = 20,
        prune_concurrency: int = 10,
    ):
        if not 1 <= batch_size <= MAX_MULTICAST_TOKENS:
            raise ValueError(f"batch_size must be between 1 and {MAX_MULTICAST_TOKENS}")
        self.provider = provider
        self.session_factory = session_factory
        self.batch_size = batch_size
        self.broadcast_page_size = broadcast_page_size
        self.prune_concurrency = prune_concurrency

    # ==================== Dispatch ====================

    async def dispatch(self, tokens: List[str], payload: PushPayload) -> DispatchResult:
        """
        Send ``payload`` to ``tokens`` in provider-sized batches, one batch at a time.

        A provider exception aborts the remaining batches and propagates;
        batches already sent stay sent.
        """
        result = DispatchResult(targeted=len(tokens))
        for part in chunk(tokens, self.batch_size):
            response = await run_in_threadpool(self.provider.send_multicast, part, payload)
            result.sent += response.success_count
            result.failed += response.failure_count

            for token_result in response.responses:
                if token_result.success:
                    logger.debug("Push delivered to token %s: %s", token_result.token, token_result.message_id)
                    continue
                logger.warning(
                    "Push failed for token %s code=%s message=%s",
                    token_result.token,
                    token_result.error_code,
                    token_result.error_message,
                )
                if is_dead_token_code(token_result.error_code or ""):
                    result.dead_tokens.add(token_result.token)

        logger.info(
            "Dispatched %d token(s): sent=%d failed=%d dead=%d",
            len(tokens),
            result.sent,
            result.failed,
            len(result.dead_tokens),
        )
        return result

    # ==================== Pruning ====================

    async def prune_dead_tokens(self, tokens: Iterable[str]) -> int:
        """Delete dead tokens concurrently. Returns how many deletions succeeded."""
        tokens = list(tokens)
        if not tokens:
            return 0

        semaphore = asyncio.Semaphore(self.prune_concurrency)

        async def _prune(token: str) -> int:
            async with semaphore:
                return await run_in_threadpool(self._delete_token, token)

        outcomes = await asyncio.gather(*(_prune(token) for token in tokens), return_exceptions=True)

        removed = 0
        for token, outcome in zip(tokens, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Failed to delete dead token %s: %s", token, outcome)
            else:
                removed += 1
        logger.info("Pruned %d of %d dead token(s)", removed, len(tokens))
        return removed

    def _delete_token(self, token: str) -> int:
        db = self.session_factory()
        try:
            return DeviceService.delete_token(db, token)
        finally:
            db.close()

    # ==================== Targets ====================

    async def send_to_token(self, token: str, payload: PushPayload) -> str:
        """Send to one literal token. Returns the provider message id."""
        try:
            message_id = await run_in_threadpool(self.provider.send_one, token, payload)
        except PushSendError as exc:
            if is_dead_token_code(exc.code):
                logger.warning("Token %s rejected as dead (%s), removing it", token, exc.code)
                await self.prune_dead_tokens([token])
            raise
        logger.info("Notification sent to token %s: %s", token, message_id)
        return message_id

    async def send_to_user(self, db: Session, user_id: int, payload: PushPayload) -> DispatchResult:
        """Send to every active device of a user."""
        tokens = await run_in_threadpool(resolve_tokens, db, UserTarget(user_id=user_id))
        if not tokens:
            logger.warning("No active devices found for user %s", user_id)
            return DispatchResult()

        result = await self.dispatch(tokens, payload)
        result.removed_dead = await self.prune_dead_tokens(result.dead_tokens)
        logger.info("Notification stats for user %s: sent=%d failed=%d", user_id, result.sent, result.failed)
        return result

    async def send_to_all(self, db: Session, payload: PushPayload) -> DispatchResult:
        """Broadcast to every active device."""
        tokens = await run_in_threadpool(resolve_tokens, db, BroadcastTarget(page_size=self.broadcast_page_size))
        if not tokens:
            logger.warning("No active devices to broadcast to")
            return DispatchResult()

        result = await self.dispatch(tokens, payload)
        result.removed_dead = await self.prune_dead_tokens(result.dead_tokens)
        return result

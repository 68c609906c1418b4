"""Bounded retry with credential rotation around the generation client.

:class:`RetryController` turns the single-attempt
:class:`~zulepfp.core.generation_client.GenerationClient` into a call that
either returns image bytes or fails terminally.

Transitions per attempt
-----------------------
===============  ==============================================  =====================
Outcome          Action                                          Delay
===============  ==============================================  =====================
Success          return the bytes                                --
RateLimited      advance credential, wait, retry                 ``rate_limit_delay``
Unavailable      wait, advance credential, retry                 ``unavailable_delay``
Empty / Other    advance credential, wait, retry                 ``failure_delay``
===============  ==============================================  =====================

The budget defaults to twice the pool size, so every credential is tried
at least twice before :class:`~zulepfp.core.errors.MaxRetriesExceededError`
is raised.  An empty pool raises
:class:`~zulepfp.core.errors.NoCredentialsError` without any network call.

Attempts are strictly sequential.  Each call works on its own
:class:`~zulepfp.core.key_pool.KeyRotation` lease, so concurrent requests
never rotate each other's credential.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from zulepfp.core.config import ZulePfpConfig
from zulepfp.core.errors import MaxRetriesExceededError, NoCredentialsError
from zulepfp.core.generation_client import (
    Empty,
    GenerationClient,
    GenerationOutcome,
    OtherFailure,
    RateLimited,
    Success,
    Unavailable,
)
from zulepfp.core.key_pool import KeyPool

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class RetryController:
    """Drive generation attempts until success or budget exhaustion.

    Args:
        pool: Shared credential pool.
        client: Single-attempt generation client.
        rate_limit_delay: Seconds to wait after a 429.
        unavailable_delay: Seconds to wait after a 503.
        failure_delay: Seconds to wait after an empty or failed attempt.
        sleep: Awaitable sleep function (``asyncio.sleep`` by default).
    """

    def __init__(
        self,
        pool: KeyPool,
        client: GenerationClient,
        *,
        rate_limit_delay: float = 1.0,
        unavailable_delay: float = 5.0,
        failure_delay: float = 1.0,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.pool = pool
        self.client = client
        self.rate_limit_delay = rate_limit_delay
        self.unavailable_delay = unavailable_delay
        self.failure_delay = failure_delay
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: ZulePfpConfig,
        pool: KeyPool,
        client: GenerationClient,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> RetryController:
        return cls(
            pool,
            client,
            rate_limit_delay=config.rate_limit_delay,
            unavailable_delay=config.unavailable_delay,
            failure_delay=config.failure_delay,
            sleep=sleep,
        )

    async def generate_with_retry(self, prompt: str, max_attempts: int | None = None) -> bytes:
        """Generate an image, rotating credentials on every failure.

        Args:
            prompt: Text prompt passed through to the client unchanged.
            max_attempts: Attempt budget.  Defaults to ``2 * len(pool)``.

        Returns:
            Raw image bytes from the first successful attempt.

        Raises:
            NoCredentialsError: The pool is empty; no attempt was made.
            MaxRetriesExceededError: All attempts in the budget failed.
        """
        if len(self.pool) == 0:
            logger.error("No generation API key available.")
            raise NoCredentialsError()

        if max_attempts is None:
            max_attempts = 2 * len(self.pool)

        rotation = self.pool.lease()
        last_outcome: GenerationOutcome | None = None
        attempt = 0

        while attempt < max_attempts:
            credential = rotation.current()
            outcome = await self.client.generate(prompt, credential)
            last_outcome = outcome
            attempt += 1

            if isinstance(outcome, Success):
                if rotation.advances:
                    logger.info(
                        f"Image generated with {credential.name} after "
                        f"{rotation.advances} key switch(es)"
                    )
                return outcome.image_bytes

            if attempt >= max_attempts:
                break

            if isinstance(outcome, RateLimited):
                logger.warning(
                    f"{credential.name} limit exhausted (429), switching to the next API key..."
                )
                rotation.advance()
                await self._sleep(self.rate_limit_delay)
            elif isinstance(outcome, Unavailable):
                logger.warning(
                    f"Service unavailable (503) with {credential.name}. Retrying after delay..."
                )
                await self._sleep(self.unavailable_delay)
                rotation.advance()
            elif isinstance(outcome, Empty):
                logger.warning(f"No image returned with {credential.name}. Retrying...")
                rotation.advance()
                await self._sleep(self.failure_delay)
            else:
                message = outcome.message if isinstance(outcome, OtherFailure) else repr(outcome)
                logger.warning(f"Error generating image with {credential.name}: {message}")
                rotation.advance()
                await self._sleep(self.failure_delay)

        logger.error(f"Max retries reached ({attempt}/{max_attempts}). Unable to generate image.")
        raise MaxRetriesExceededError(attempt, last_outcome)

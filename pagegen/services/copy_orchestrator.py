from __future__ import annotations

import asyncio
import enum
import hashlib
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from pagegen.schemas import GeneratedCopyResult, ProductInput
from pagegen.services.copy_generation import build_fallback
from pagegen.services.copy_normalizer import normalize
from pagegen.services.notifications import NotificationService

logger = logging.getLogger(__name__)

FALLBACK_ADVISORY = "Failed to generate AI copy, using fallback content."


class CopyTransport(Protocol):
    async def generate_copy(self, *, prompt: str, product: ProductInput | None = None) -> dict[str, Any]: ...


class GenerationState(str, enum.Enum):
    idle = "idle"
    requesting = "requesting"
    settled_success = "settled_success"
    settled_fallback = "settled_fallback"


@dataclass(frozen=True)
class GenerationOutcome:
    result: GeneratedCopyResult
    error: str | None = None

    @property
    def used_fallback(self) -> bool:
        return self.error is not None


ResultListener = Callable[[GeneratedCopyResult | None, str | None], None]
LoadingListener = Callable[[bool], None]


def generation_signature(product: ProductInput, prompt: str) -> str:
    payload = json.dumps(
        {"product": product.model_dump(mode="json"), "prompt": prompt},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class GenerationOrchestrator:
    """
    Drives one copy-generation cycle per distinct (product, prompt) pair.

    Only the newest cycle may publish a result. Starting a new cycle cancels the
    in-flight remote call, and each cycle re-checks its token before applying
    anything, so a late completion from a superseded call is dropped.
    """

    def __init__(
        self,
        transport: CopyTransport,
        *,
        on_result: ResultListener | None = None,
        on_loading: LoadingListener | None = None,
        notifications: NotificationService | None = None,
    ) -> None:
        self._transport = transport
        self._on_result = on_result
        self._on_loading = on_loading
        self._notifications = notifications
        self._cycle = 0
        self._signature: str | None = None
        self._task: asyncio.Task[GenerationOutcome] | None = None
        self.state = GenerationState.idle
        self.result: GeneratedCopyResult | None = None
        self.error: str | None = None

    @property
    def loading(self) -> bool:
        return self.state is GenerationState.requesting

    def update(self, product: ProductInput | None, prompt: str | None) -> asyncio.Task[GenerationOutcome] | None:
        """Start a cycle when the inputs changed; must run inside an event loop."""
        prompt = (prompt or "").strip()
        if product is None or not prompt:
            self.reset()
            return None

        signature = generation_signature(product, prompt)
        if signature == self._signature:
            return self._task

        self._cancel_in_flight()
        self._cycle += 1
        self._signature = signature
        self.state = GenerationState.requesting
        self.error = None
        self._emit_loading(True)
        self._task = asyncio.get_running_loop().create_task(
            self._run_cycle(self._cycle, signature, product, prompt)
        )
        return self._task

    async def generate(self, product: ProductInput | None, prompt: str | None) -> GenerationOutcome | None:
        """Run (or join) the cycle for these inputs; None if it was superseded or inputs are missing."""
        task = self.update(product, prompt)
        if task is None:
            return None
        await asyncio.wait({task})
        if task.cancelled():
            return None
        outcome = task.result()
        if not self._is_current(outcome):
            return None
        return outcome

    def reset(self) -> None:
        was_loading = self.loading
        self._cancel_in_flight()
        self._cycle += 1
        self._signature = None
        self._task = None
        self.state = GenerationState.idle
        self.error = None
        if was_loading:
            self._emit_loading(False)
        if self.result is not None:
            self.result = None
            self._emit_result(None, None)

    async def aclose(self) -> None:
        task = self._task
        self.reset()
        if task is not None and not task.done():
            await asyncio.wait({task})

    def _is_current(self, outcome: GenerationOutcome) -> bool:
        return self.result is outcome.result

    def _cancel_in_flight(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _run_cycle(
        self,
        cycle: int,
        signature: str,
        product: ProductInput,
        prompt: str,
    ) -> GenerationOutcome:
        try:
            payload = await self._transport.generate_copy(prompt=prompt, product=product)
        except asyncio.CancelledError:
            logger.debug("copy_generation.cycle_cancelled", extra={"cycle": cycle})
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "copy_generation.remote_failed",
                extra={"cycle": cycle, "error": str(exc), "error_type": type(exc).__name__},
            )
            outcome = GenerationOutcome(result=build_fallback(product, prompt), error=FALLBACK_ADVISORY)
            state = GenerationState.settled_fallback
        else:
            outcome = GenerationOutcome(result=normalize(payload, product, prompt))
            state = GenerationState.settled_success

        if cycle != self._cycle or signature != self._signature:
            logger.info("copy_generation.stale_result_dropped", extra={"cycle": cycle, "current": self._cycle})
            return outcome

        self.result = outcome.result
        self.error = outcome.error
        self.state = state
        self._emit_loading(False)
        self._emit_result(outcome.result, outcome.error)
        if outcome.error and self._notifications is not None and not self._notifications.closed:
            self._notifications.add(outcome.error, "error")
        return outcome

    def _emit_loading(self, loading: bool) -> None:
        if self._on_loading is not None:
            self._on_loading(loading)

    def _emit_result(self, result: GeneratedCopyResult | None, error: str | None) -> None:
        if self._on_result is not None:
            self._on_result(result, error)

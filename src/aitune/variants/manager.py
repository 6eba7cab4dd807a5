# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Variant lifecycle: naming, baking, visibility polling, deletion and garbage collection.

A variant is a named model derived from a base model with one candidate value
baked in. Variants are created through the persistent endpoint, which owns the
shared model store, and become visible to every endpoint using that store.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from aitune.common.enums import BackendType, VariantState
from aitune.common.environment import Environment
from aitune.common.exceptions import BackendError, BakeFailedError
from aitune.common.mixins import AITuneLoggerMixin
from aitune.common.retry import poll_until
from aitune.endpoints.models import Endpoint

if TYPE_CHECKING:
    from aitune.backends.base import InferenceBackend
    from aitune.ledger import ResultsLedger

__all__ = [
    "Variant",
    "VariantManager",
    "base_alias",
    "configuration_alias",
    "variant_name",
]

_BACKEND_SHORT_NAMES = {BackendType.OLLAMA: "ollama", BackendType.LLAMACPP: "llama"}


def base_alias(model: str, prefix: str | None = None) -> str:
    """Compact, name-safe alias of a model tag.

    ``llama4:16x17b`` -> ``llama4-16x17b``; ``gemma3:27b-it-fp16`` -> ``gemma3-27b-i-f16``.
    A leading variant prefix is stripped so aliases of variants never nest.
    """
    prefix = Environment.VARIANT.PREFIX if prefix is None else prefix
    alias = re.sub(r"[/:]+", "-", model)
    if prefix:
        alias = alias.removeprefix(prefix)
    alias = re.sub(r"-it(?=-|$)", "-i", alias)
    alias = alias.replace("-fp16", "-f16").replace("-bf16", "-b16")
    return alias


def variant_name(
    backend: BackendType,
    base_model: str,
    device_label: str,
    candidate: int,
    prefix: str | None = None,
) -> str:
    """Deterministic variant name, unique per (base model, device set, candidate)."""
    prefix = Environment.VARIANT.PREFIX if prefix is None else prefix
    alias = base_alias(base_model, prefix)
    return f"{prefix}{_BACKEND_SHORT_NAMES.get(backend, str(backend))}-{alias}-{device_label}-ng{candidate}"


def configuration_alias(
    backend: BackendType,
    base_model: str,
    device_label: str,
    candidate: int | None,
    max_tokens: int,
    context_size: int,
    temperature: float,
    exhaustive: bool,
) -> str:
    """Human-readable alias carrying the full trial configuration.

    Example: ``llama3-8b-ollama-3090ti45-ng32-p64-c4k-t00-std``. The baseline
    (no candidate) uses ``ng0``.
    """
    return "-".join(
        [
            base_alias(base_model),
            _BACKEND_SHORT_NAMES.get(backend, str(backend)),
            device_label,
            f"ng{candidate if candidate is not None else 0}",
            f"p{max_tokens}",
            f"c{context_size // 1000}k",
            f"t{round(temperature * 10):02d}",
            "ex" if exhaustive else "std",
        ]
    )


@dataclass(eq=False)
class Variant:
    """A baked variant tracked for garbage collection.

    ``endpoint`` is the address of the endpoint whose sweep produced it, which
    together with ``base_model`` identifies the pair in the ledger.
    """

    name: str
    base_model: str
    candidate: int
    endpoint: str
    state: VariantState = VariantState.PENDING


class VariantManager(AITuneLoggerMixin):
    """Bakes, polls and deletes variants through the catalog-owning endpoint.

    Args:
        backend: Backend implementing variant create/delete and model listing
        catalog: The persistent endpoint owning the model store
        catalog_lock: Serializes create/pull operations against the store
    """

    def __init__(
        self,
        backend: "InferenceBackend",
        catalog: Endpoint,
        catalog_lock: asyncio.Lock | None = None,
        visible_timeout: float | None = None,
        poll_interval: float | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.backend = backend
        self.catalog = catalog
        self.catalog_lock = catalog_lock or asyncio.Lock()
        self.visible_timeout = visible_timeout or Environment.VARIANT.VISIBLE_TIMEOUT
        self.poll_interval = poll_interval or Environment.VARIANT.POLL_INTERVAL
        self._variants: dict[str, Variant] = {}

    def name_for(self, base_model: str, device_label: str, candidate: int) -> str:
        return variant_name(self.backend.backend_type, base_model, device_label, candidate)

    @property
    def tracked(self) -> list[Variant]:
        """Variants created or adopted by this run that have not been deleted."""
        return [v for v in self._variants.values() if v.state != VariantState.DELETED]

    def get(self, name: str) -> Variant | None:
        return self._variants.get(name)

    async def is_visible(self, name: str, endpoint: Endpoint | None = None) -> bool:
        address = (endpoint or self.catalog).address
        try:
            models = await self.backend.list_models(address)
        except BackendError as e:
            self.debug(f"Could not list models on {address}: {e!r}")
            return False
        return any(self.backend.model_matches(model, name) for model in models)

    async def bake(
        self, name: str, base_model: str, candidate: int, endpoint: Endpoint
    ) -> Variant:
        """Create ``name`` from ``base_model`` with ``candidate`` baked in.

        A variant that already exists and is visible is adopted without a second
        create call.

        Raises:
            BakeFailedError: If the backend rejects the create request
        """
        async with self.catalog_lock:
            if await self.is_visible(name):
                self.debug(f"Variant {name} already exists; reusing it")
                state = VariantState.VISIBLE
            else:
                self.info(f"Baking {name} from {base_model} with candidate {candidate}")
                try:
                    await self.backend.bake_variant(
                        self.catalog.address, name, base_model, candidate
                    )
                except BackendError as e:
                    raise BakeFailedError(name, str(e)) from e
                state = VariantState.PENDING

        variant = self._variants.get(name)
        if variant is None or variant.state == VariantState.DELETED:
            variant = Variant(
                name=name,
                base_model=base_model,
                candidate=candidate,
                endpoint=endpoint.address,
            )
            self._variants[name] = variant
        if state == VariantState.VISIBLE:
            variant.state = state
        return variant

    async def wait_visible(
        self, name: str, endpoint: Endpoint | None = None, timeout: float | None = None
    ) -> bool:
        """Poll until ``name`` is listed by ``endpoint`` (the catalog by default)."""
        visible = await poll_until(
            lambda: self.is_visible(name, endpoint),
            timeout=timeout or self.visible_timeout,
            interval=self.poll_interval,
            description=f"{name} visibility",
        )
        variant = self._variants.get(name)
        if visible and variant is not None:
            variant.state = VariantState.VISIBLE
        if not visible:
            self.warning(f"Variant {name} not visible after {timeout or self.visible_timeout:g}s")
        return visible

    async def delete(self, name: str) -> None:
        """Delete ``name``. Best-effort: failures are logged, a missing variant is fine."""
        try:
            await self.backend.delete_variant(self.catalog.address, name)
        except BackendError as e:
            self.warning(f"Could not delete variant {name}: {e!r}")
        else:
            self.debug(f"Deleted variant {name}")
        variant = self._variants.get(name)
        if variant is not None:
            variant.state = VariantState.DELETED

    async def collect_garbage(self, ledger: "ResultsLedger") -> list[str]:
        """Delete every tracked variant that is not the ledger's best for its pair.

        The survivor of a pair is the variant whose candidate matches the fastest
        optimized or published row of that (endpoint, base model) pair.

        Returns:
            Names of the deleted variants
        """
        deleted = []
        for variant in self.tracked:
            best = ledger.best_tuned(variant.endpoint, variant.base_model)
            if best is not None and best.candidate == variant.candidate:
                self.debug(f"Keeping {variant.name} ({best.tokens_per_second:.2f} tok/s)")
                continue
            await self.delete(variant.name)
            deleted.append(variant.name)
        if deleted:
            self.info(f"Removed {len(deleted)} non-winning variant(s)")
        return deleted

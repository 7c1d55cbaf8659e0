"""Shared life cycle of the cone and line geometry orchestrators.

An orchestrator owns one kernel executor, the entity list of the current
dataset and every cache derived from it.  It listens to the parameter bus
and turns each event into the smallest recomputation that keeps the
entities in sync.

States
------
``UNINITIALIZED``  no executor yet (or its construction failed)
``INITIALIZING``   executor being built, or entities being rebuilt
``READY``          events are handled as they arrive

Events received outside ``READY`` are queued (one slot per parameter name,
latest value wins, ordered by last arrival) and replayed once ``generate``
completes.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple

from timespace.fusion.domain_types import CityTransportLookup

from .executor import ExecutorFactory, ExecutorInitError, KernelExecutor
from .parameters import ParameterBus

logger = logging.getLogger(__name__)


class OrchestratorState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class GeometryOrchestrator:
    shader_id: ClassVar[str] = ""
    channels: ClassVar[Mapping[str, str]] = {}
    output_count: ClassVar[int] = 1
    tracked_events: ClassVar[Tuple[str, ...]] = ()

    def __init__(self, bus: ParameterBus, executor_factory: ExecutorFactory) -> None:
        self._bus = bus
        self._executor_factory = executor_factory
        self._executor: Optional[KernelExecutor] = None
        self._init_task: Optional[asyncio.Future] = None
        self._init_error: Optional[ExecutorInitError] = None
        self._state = OrchestratorState.UNINITIALIZED
        self._pending: Dict[str, object] = {}
        self._entities: List = []
        self._token = bus.subscribe(self.tracked_events, self._on_parameter)

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def bus(self) -> ParameterBus:
        return self._bus

    @property
    def executor(self) -> KernelExecutor:
        if self._executor is None:
            raise RuntimeError(f"{type(self).__name__} has no executor yet; await generate() first.")
        return self._executor

    @property
    def entities(self) -> List:
        return list(self._entities)

    @property
    def pending_events(self) -> Sequence[str]:
        return tuple(self._pending)

    # ------------------------------------------------------------ executor
    async def _acquire_executor(self) -> KernelExecutor:
        if self._executor is not None:
            return self._executor
        if self._init_error is not None:
            raise self._init_error
        if self._init_task is None:
            self._state = OrchestratorState.INITIALIZING
            logger.debug("Building %s executor", self.shader_id)
            self._init_task = asyncio.ensure_future(self._build_executor())
        try:
            executor = await self._init_task
        except Exception as exc:
            if self._init_error is None:
                self._init_error = ExecutorInitError(f"Could not build the {self.shader_id} executor: {exc}")
                self._state = OrchestratorState.UNINITIALIZED
                logger.error("%s", self._init_error)
            raise self._init_error from exc
        if self._executor is None:
            self._executor = executor
            logger.info("%s executor ready", self.shader_id)
        return self._executor

    async def _build_executor(self) -> KernelExecutor:
        return await self._executor_factory(self.shader_id, dict(self.channels), self.output_count)

    # ---------------------------------------------------------- generation
    async def generate(self, lookup: CityTransportLookup, **extra) -> List:
        """Build the entities of ``lookup`` and compute their geometry.

        Returns a new list; later recomputations update the same entity
        objects in place.
        """
        executor = await self._acquire_executor()
        self._state = OrchestratorState.INITIALIZING
        try:
            self._entities = self._build(executor, lookup, **extra)
        except Exception:
            self._entities = []
            self._discard()
            raise
        self._state = OrchestratorState.READY
        logger.info("%s generated %d entities", self.shader_id, len(self._entities))
        self._flush_pending()
        return list(self._entities)

    def _build(self, executor: KernelExecutor, lookup: CityTransportLookup, **extra) -> List:
        raise NotImplementedError

    def _discard(self) -> None:
        """Forget a partially built dataset after ``_build`` failed."""

    # -------------------------------------------------------------- events
    def _on_parameter(self, name: str, value: object) -> None:
        if self._state is not OrchestratorState.READY:
            self._pending.pop(name, None)
            self._pending[name] = value
            logger.debug("%s deferred %s event", self.shader_id, name)
            return
        self._handle(name, value)

    def _flush_pending(self) -> None:
        while self._pending and self._state is OrchestratorState.READY:
            name = next(iter(self._pending))
            value = self._pending.pop(name)
            logger.debug("%s replaying deferred %s event", self.shader_id, name)
            self._handle(name, value)

    def _handle(self, name: str, value: object) -> None:
        raise NotImplementedError

    def dispose(self) -> None:
        self._bus.unsubscribe(self._token)
        for entity in self._entities:
            entity.dispose()
        self._entities = []
        self._pending.clear()

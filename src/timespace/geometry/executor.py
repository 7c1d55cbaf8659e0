"""Contract of the batched GPU kernel executor consumed by the orchestrators.

The executor itself lives in the rendering layer.  It is built once per
shader from a map of named input channels to pixel formats plus the number
of output buffers, receives uniforms and textures by name, and returns the
outputs of ``calculate`` as flat float32 RGBA buffers of
``width * height * 4`` values, in a fixed channel order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Mapping, Protocol, Union, runtime_checkable

import numpy as np


class ExecutorInitError(RuntimeError):
    """Raised when the kernel executor of an orchestrator could not be built."""


@dataclass(frozen=True, eq=False)
class TextureInput:
    src: np.ndarray
    width: int
    height: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "src", np.ascontiguousarray(self.src, dtype=np.float32))


UniformValue = Union[float, int, np.ndarray]


@runtime_checkable
class KernelExecutor(Protocol):
    def update_uniforms(self, uniforms: Mapping[str, UniformValue]) -> None:
        ...

    def update_textures(self, textures: Mapping[str, TextureInput]) -> None:
        ...

    def calculate(self, width: int, height: int) -> List[np.ndarray]:
        ...


# (shader id, channel -> pixel format, output count) -> executor
ExecutorFactory = Callable[[str, Mapping[str, str], int], Awaitable[KernelExecutor]]

"""Live tensor bookkeeping and scoped release of intermediate tensors.

Tensors a backbone hands between its pipeline steps are registered with a
``TensorTracker``. A ``TensorScope`` collects the tensors allocated inside a
``with`` block and releases all of them on exit, except the ones marked with
``keep``. If the block raises, everything it allocated is released.

Example:
    ``` py
    with TensorScope(protect=(image,)) as scope:
        as_float = scope.track(image.float())
        result = scope.track(as_float * 2)
        scope.keep(result)
    # as_float has been released, result is still live
    ```
"""

from __future__ import annotations

import logging
import weakref
from collections.abc import Iterable
from dataclasses import dataclass
from types import TracebackType

from torch import Tensor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemoryInfo:
    """Snapshot of the tracker state.

    Attributes:
        num_tensors: Number of tracked tensors that have not been released.
    """

    num_tensors: int


class TensorTracker:
    """Counts tracked tensors until they are disposed or garbage collected.

    Only weak references are held, so a tensor the caller drops without
    disposing is still freed by torch and leaves the tracker on its own.
    """

    def __init__(self) -> None:
        self._live: weakref.WeakValueDictionary[int, Tensor] = weakref.WeakValueDictionary()

    def track(self, tensor: Tensor) -> Tensor:
        """Register a tensor as live and return it unchanged."""
        self._live[id(tensor)] = tensor
        return tensor

    def dispose(self, tensor: Tensor) -> None:
        """Release a tensor. Releasing an untracked tensor is a no-op."""
        self._live.pop(id(tensor), None)

    def is_tracked(self, tensor: Tensor) -> bool:
        """Whether the tensor is currently live in this tracker."""
        return self._live.get(id(tensor)) is tensor

    @property
    def num_tensors(self) -> int:
        """Number of live tensors."""
        return len(self._live)


_DEFAULT_TRACKER = TensorTracker()


def track(tensor: Tensor) -> Tensor:
    """Register a tensor with the default tracker."""
    return _DEFAULT_TRACKER.track(tensor)


def dispose(tensors: Tensor | Iterable[Tensor]) -> None:
    """Release one tensor or an iterable of tensors from the default tracker."""
    if isinstance(tensors, Tensor):
        _DEFAULT_TRACKER.dispose(tensors)
        return
    for tensor in tensors:
        _DEFAULT_TRACKER.dispose(tensor)


def memory() -> MemoryInfo:
    """Return the current state of the default tracker."""
    return MemoryInfo(num_tensors=_DEFAULT_TRACKER.num_tensors)


class TensorScope:
    """Context manager that releases the tensors allocated inside it.

    Only tensors passed to ``track`` are counted. Temporaries that live and
    die inside a single call, such as the ``image / 127.5`` step of a
    normalization or the dtype cast and permute inside a graph runtime, are
    never registered; they are freed by torch when that call returns, and a
    leak inside them does not show up in ``memory()``.

    Args:
        protect: Caller-owned tensors that must never be tracked or released,
            even if an operation returns one of them unchanged.
        tracker: Tracker to register tensors with. Defaults to the
            process-wide tracker.
    """

    def __init__(
        self,
        protect: Iterable[object] = (),
        tracker: TensorTracker | None = None,
    ) -> None:
        self._tracker = tracker if tracker is not None else _DEFAULT_TRACKER
        self._protected = {id(obj) for obj in protect}
        self._allocated: dict[int, Tensor] = {}
        self._kept: set[int] = set()
        self._active = False

    def track(self, tensor: Tensor) -> Tensor:
        """Register a tensor allocated inside this scope and return it."""
        if not self._active:
            raise RuntimeError("TensorScope.track() called outside of a with block")
        if id(tensor) in self._protected:
            return tensor
        self._allocated[id(tensor)] = tensor
        self._tracker.track(tensor)
        return tensor

    def keep(self, *tensors: Tensor) -> None:
        """Mark tensors that escape the scope and must stay live."""
        for tensor in tensors:
            if id(tensor) not in self._allocated:
                raise ValueError("Only tensors tracked by this scope can be kept")
            self._kept.add(id(tensor))

    @property
    def num_allocated(self) -> int:
        """Number of distinct tensors tracked by this scope so far."""
        return len(self._allocated)

    def __enter__(self) -> TensorScope:
        self._active = True
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._active = False
        released = 0
        for key, tensor in self._allocated.items():
            # nothing escapes when the block failed
            if exc_type is None and key in self._kept:
                continue
            self._tracker.dispose(tensor)
            released += 1
        if exc_type is not None:
            logger.debug(f"Released {released} tensors after {exc_type.__name__}")
        self._allocated.clear()
        self._kept.clear()

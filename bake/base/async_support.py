"""
Async support for Cloudbake.

Builds are synchronous: the pipeline runs steps one after another and only
the state-convergence engine uses a background thread.  ``async_wrap``
turns a blocking method into an awaitable coroutine using
:func:`asyncio.to_thread`, so a build can be driven from async code
without blocking the event loop::

    builder = ImageBuilder(config, provider="aws", provider_config={...})
    artifact = await builder.arun()

Cancelling the awaiting task cannot stop a thread.  Instead, when the
wrapped callable takes a :class:`~bake.engine.cancel.CancelSignal`, the
signal is set and the task waits for the build to clean up before it
re-raises :class:`asyncio.CancelledError`.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable, Coroutine, TypeVar

from bake.engine.cancel import CancelSignal

logger = logging.getLogger("cloudbake")

T = TypeVar("T")


def async_wrap(
    fn: Callable[..., T],
    *,
    cancel_kwarg: str | None = None,
) -> Callable[..., Coroutine[Any, Any, T]]:
    """Return an async version of *fn* that runs it in a thread.

    The wrapper preserves the original function's signature and docstring.

    Args:
        fn: A synchronous callable to wrap.
        cancel_kwarg: Name of the keyword argument through which *fn*
            accepts a :class:`CancelSignal`.  A fresh signal is passed when
            the caller gives none.

    Returns:
        An async callable with the same parameters and return type.
    """

    @functools.wraps(fn)
    async def _wrapper(*args: Any, **kwargs: Any) -> T:
        signal = None
        if cancel_kwarg is not None:
            signal = kwargs.get(cancel_kwarg) or CancelSignal()
            kwargs[cancel_kwarg] = signal

        future = asyncio.ensure_future(asyncio.to_thread(fn, *args, **kwargs))
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            if signal is None:
                raise
            signal.set()
            try:
                await future
            except Exception as exc:
                logger.debug("[DEBUG] %s ended after cancel: %s", fn.__qualname__, exc)
            raise

    return _wrapper

# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

"""Method-level transcript decorator for transports."""

import base64
import functools
import inspect
import os
from collections.abc import Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

from agentpipe.logging.transcript import Transcript


@runtime_checkable
class Loggable(Protocol):
    """Instance with an optional transcript. Used by @log_method."""

    _transcript: Transcript | None


def _build_args_dict(
    fn: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
) -> dict[str, Any]:
    """Map positional + keyword args to parameter names, skipping self."""
    sig = inspect.signature(fn)
    # None stands in for self (already stripped from args by the wrapper).
    bound = sig.bind(None, *args, **kwargs)
    bound.arguments.pop("self", None)
    return {k: _serialize(v) for k, v in bound.arguments.items()}


_F = TypeVar("_F", bound=Callable[..., Any])


def log_method(
    *,
    before: bool = False,
    after: bool = False,
) -> Callable[[_F], _F]:
    """Record coroutine method calls in the instance's Transcript.

    Expects the instance to have a ``_transcript: Transcript | None``
    attribute; with None the method runs unrecorded. A call that raises
    is recorded as ``<name>.error`` when ``after`` is set, then re-raised.
    """

    def decorator(fn: _F) -> _F:
        if not inspect.iscoroutinefunction(fn):
            raise TypeError(f"log_method needs a coroutine function: {fn.__name__}")
        event_name = fn.__name__

        @functools.wraps(fn)
        async def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            transcript: Transcript | None = self._transcript
            args_dict = _build_args_dict(fn, args, kwargs) if transcript else {}
            if transcript and before:
                transcript.log(event_name, args_dict)
            try:
                result = await fn(self, *args, **kwargs)
            except Exception as exc:
                if transcript and after:
                    transcript.log(
                        f"{event_name}.error",
                        {**args_dict, "error": f"{type(exc).__name__}: {exc}"},
                    )
                raise
            if transcript and after:
                result_data: dict[str, Any] = {**args_dict}
                if result is not None:
                    result_data["result"] = _serialize(result)
                transcript.log(f"{event_name}.result", result_data)
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


def _serialize(value: Any) -> Any:
    """Best-effort serialization for transcript entries."""
    if isinstance(value, bytes):
        return base64.b64encode(value).decode()
    if isinstance(value, str | int | float | bool | type(None)):
        return value
    if isinstance(value, os.PathLike):
        return os.fspath(value)
    if isinstance(value, list | tuple):
        return [_serialize(v) for v in value]
    return str(value)

"""Browser localStorage access over the preferences WebSocket.

The server cannot touch localStorage itself: calls are forwarded to the page
through a bridge and answered asynchronously. Until the page has connected
(e.g. while a plain HTTP request is being served) the bridge is unavailable.
"""

import asyncio
import uuid
from typing import Any, Protocol, TypeVar

from fastapi import WebSocket
from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json
from starlette.websockets import WebSocketState

from gitactdash.config import settings
from gitactdash.logging_config import get_storage_logger, service_operation
from gitactdash.result import Result, failure, success

T = TypeVar("T")

log = get_storage_logger()

SET_ITEM_FUNCTION = "localStorage.setItem"
GET_ITEM_FUNCTION = "localStorage.getItem"
REMOVE_ITEM_FUNCTION = "localStorage.removeItem"
CLEAR_FUNCTION = "localStorage.clear"

INTEROP_UNAVAILABLE = (
    "JavaScript interop is not available during prerendering. "
    "Please call this method after the component has been rendered."
)
KEY_REQUIRED = "Key cannot be null or empty."


class InteropUnavailableError(RuntimeError):
    """No browser is connected to answer storage calls."""


class StorageCallError(RuntimeError):
    """The browser reported an error while running a storage call."""


class StorageBridge(Protocol):
    """Something that can run localStorage functions in the browser."""

    def is_available(self) -> bool: ...

    async def call(self, function: str, *args: str) -> Any: ...


class WebSocketStorageBridge:
    """Bridge that runs storage calls through a connected WebSocket.

    Requests are sent as ``{"type": "storage", "id", "function", "args"}`` and
    the page answers with ``{"type": "storage_result", "id", "ok", "value",
    "error"}``. Replies must be fed back through ``resolve`` by whoever reads
    the socket.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._websocket: WebSocket | None = None
        self._pending: dict[str, asyncio.Future[Any]] = {}
        self._timeout = timeout or settings.storage_timeout

    def attach(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    def detach(self) -> None:
        """Forget the socket and fail every call still waiting for a reply."""
        self._websocket = None
        for future in self._pending.values():
            if not future.done():
                future.set_exception(InteropUnavailableError("Browser disconnected"))
        self._pending.clear()

    def is_available(self) -> bool:
        return (
            self._websocket is not None
            and self._websocket.client_state == WebSocketState.CONNECTED
        )

    async def call(self, function: str, *args: str) -> Any:
        """Run ``function(*args)`` in the browser and return its value.

        Raises:
            InteropUnavailableError: No socket attached
            StorageCallError: The browser call threw
            TimeoutError: No reply within the configured timeout
        """
        if not self.is_available():
            raise InteropUnavailableError(INTEROP_UNAVAILABLE)

        call_id = uuid.uuid4().hex
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[call_id] = future
        try:
            await self._websocket.send_json(  # type: ignore[union-attr]
                {"type": "storage", "id": call_id, "function": function, "args": list(args)}
            )
            return await asyncio.wait_for(future, self._timeout)
        finally:
            self._pending.pop(call_id, None)

    def resolve(self, message: dict[str, Any]) -> bool:
        """Complete the call a ``storage_result`` message answers.

        Returns:
            False when no call is waiting for that id
        """
        call_id = message.get("id")
        future = self._pending.get(call_id) if isinstance(call_id, str) else None
        if future is None or future.done():
            log.debug("storage_result_unmatched", call_id=repr(call_id))
            return False
        if message.get("ok"):
            future.set_result(message.get("value"))
        else:
            future.set_exception(StorageCallError(message.get("error") or "Unknown storage error"))
        return True


def _blank(key: str) -> bool:
    return not key or not key.strip()


class LocalStorageService:
    """Result-returning wrapper over a storage bridge."""

    def __init__(self, bridge: StorageBridge) -> None:
        self._bridge = bridge

    async def is_available(self) -> bool:
        """Whether storage calls can be made (a browser is connected)."""
        return self._bridge.is_available()

    async def _invoke(self, verb: str, target: str, function: str, *args: str) -> Result[Any]:
        if not self._bridge.is_available():
            log.warning("interop_unavailable", function=function, target=target)
            return failure(INTEROP_UNAVAILABLE)

        try:
            log.debug("storage_call", function=function, target=target)
            return success(await self._bridge.call(function, *args))
        except InteropUnavailableError:
            log.warning("interop_unavailable", function=function, target=target)
            return failure(INTEROP_UNAVAILABLE)
        except StorageCallError as e:
            log.error("storage_call_failed", function=function, target=target, error=str(e))
            return failure(f"JavaScript error while {verb} {target}: {e}")
        except TimeoutError:
            log.warning("storage_call_timeout", function=function, target=target)
            return failure(f"Operation was cancelled while {verb} {target}.")
        except Exception as e:
            log.exception("storage_call_unexpected", function=function, target=target)
            return failure(f"Unexpected error while {verb} {target}: {e}")

    async def set_item(self, key: str, value: str) -> Result[None]:
        with service_operation("LocalStorageService", "set_item"):
            if _blank(key):
                log.warning("storage_key_missing")
                return failure(KEY_REQUIRED)
            result = await self._invoke("setting", f"localStorage item '{key}'", SET_ITEM_FUNCTION, key, value)
            return result.map(lambda _: None)

    async def get_item(self, key: str) -> Result[str | None]:
        """Read a raw string; success with None when the key is not set."""
        if _blank(key):
            return failure(KEY_REQUIRED)
        return await self._invoke("getting", f"localStorage item '{key}'", GET_ITEM_FUNCTION, key)

    async def remove_item(self, key: str) -> Result[None]:
        if _blank(key):
            return failure(KEY_REQUIRED)
        result = await self._invoke("removing", f"localStorage item '{key}'", REMOVE_ITEM_FUNCTION, key)
        return result.map(lambda _: None)

    async def clear(self) -> Result[None]:
        result = await self._invoke("clearing", "localStorage", CLEAR_FUNCTION)
        return result.map(lambda _: None)

    async def set_json(self, key: str, value: Any) -> Result[None]:
        """Store ``value`` as camelCase JSON (pydantic models use their aliases)."""
        try:
            payload = to_json(value, by_alias=True).decode()
        except PydanticSerializationError as e:
            return failure(f"Failed to serialize object for localStorage key '{key}': {e}")
        except Exception as e:
            return failure(f"Unexpected error while serializing object for localStorage key '{key}': {e}")
        return await self.set_item(key, payload)

    async def get_json(self, key: str, type_: type[T]) -> Result[T | None]:
        """Read and validate a JSON value; success with None when the key is not set."""
        raw = await self.get_item(key)
        return raw.bind(lambda text: _decode(key, text, type_))


def _decode(key: str, text: str | None, type_: type[T]) -> Result[T | None]:
    if text is None:
        return success(None)
    try:
        return success(TypeAdapter(type_).validate_json(text))
    except ValidationError as e:
        return failure(f"Failed to deserialize JSON for localStorage key '{key}': {e}")
    except Exception as e:
        return failure(f"Unexpected error while deserializing JSON for localStorage key '{key}': {e}")

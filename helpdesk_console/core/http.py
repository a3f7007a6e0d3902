# helpdesk_console/core/http.py
import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from helpdesk_console.core.errors import NotFound, RemoteError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

LIST_KEYS = ("tickets", "workflows", "executions", "items", "data")


class RemoteClient:
    """Thin async wrapper over one remote service.

    Every failure leaves here as ``RemoteError`` (``NotFound`` for 404s) so the
    controllers only ever handle console errors.
    """

    service_name = "service"

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Content-Type": "application/json", **(headers or {})},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        logger.debug("%s %s %s", self.service_name, method, path)
        try:
            r = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s unreachable: %s", self.service_name, e)
            raise RemoteError(f"{self.service_name} unreachable: {e}") from e

        if r.status_code >= 400:
            message = _error_message(r)
            logger.warning("%s %s %s failed: %s", self.service_name, method, path, message)
            if r.status_code == 404:
                raise NotFound(message)
            raise RemoteError(message, status_code=r.status_code)

        if r.status_code == 204 or not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise RemoteError(f"{self.service_name} returned a non-JSON body") from e


def _error_message(r: httpx.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"Request failed with status {r.status_code}"


def unwrap_list(payload: Any) -> tuple[list[Any], int]:
    """Fold every list response shape seen in the wild into (items, total)."""
    if payload is None:
        return [], 0
    if isinstance(payload, list):
        return payload, len(payload)
    if isinstance(payload, dict):
        for key in LIST_KEYS:
            items = payload.get(key)
            if isinstance(items, list):
                total = payload.get("total") or payload.get("count") or len(items)
                return items, int(total)
            if isinstance(items, dict):
                # {"data": {"items": [...], "total": n}}
                return unwrap_list(items)
    raise RemoteError("Unrecognised list response")


def normalize(model: type[M], payload: Any) -> M:
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise RemoteError(f"Malformed {model.__name__} payload: {e.error_count()} error(s)") from e


def normalize_all(model: type[M], payloads: list[Any]) -> list[M]:
    return [normalize(model, p) for p in payloads]

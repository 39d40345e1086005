"""Async clients for the action-dispatched word table gateway."""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog

from wordai.database import ConnectionParams
from wordai.services.gateway_service import WordTableGateway, error

logger = structlog.get_logger(__name__)

Result = dict[str, Any]


class GatewayClient(Protocol):
    """Operations the trainer needs from the gateway; each returns a tagged result."""

    async def get_schema(self) -> Result: ...

    async def get_count(self) -> Result: ...

    async def get_batch(self, offset: int, limit: int) -> Result: ...

    async def save_model(self, model: dict[str, Any]) -> Result: ...

    async def get_model_metadata(self) -> Result: ...


class HttpGatewayClient:
    """Posts JSON requests to a remote gateway endpoint."""

    def __init__(
        self,
        base_url: str,
        params: ConnectionParams,
        timeout_seconds: float = 10.0,
        session: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize gateway client.

        Args:
            base_url: Full URL of the gateway endpoint
            params: Connection parameters sent with every request
            timeout_seconds: HTTP timeout in seconds
            session: Optional preconfigured httpx client
        """
        self.base_url = base_url
        self.params = params
        self.session = session or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    async def request(self, action: str, **fields: Any) -> Result:
        """Send one action; transport and decoding failures come back as error results."""
        payload = {"action": action, **self.params.as_payload(), **fields}
        try:
            response = await self.session.post(
                self.base_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("gateway_http_error", action=action, status=exc.response.status_code)
            return error(f"HTTP error! status: {exc.response.status_code}")
        except httpx.HTTPError as exc:
            logger.warning("gateway_request_failed", action=action, error=str(exc))
            return error(str(exc) or exc.__class__.__name__)
        except ValueError as exc:
            logger.warning("gateway_invalid_json", action=action, error=str(exc))
            return error(f"Invalid JSON response: {exc}")

        if not isinstance(result, dict) or "status" not in result:
            return error("Malformed gateway response")
        return result

    async def get_schema(self) -> Result:
        return await self.request("get_schema")

    async def get_count(self) -> Result:
        return await self.request("get_count")

    async def get_batch(self, offset: int, limit: int) -> Result:
        return await self.request("get_batch", offset=offset, limit=limit)

    async def save_model(self, model: dict[str, Any]) -> Result:
        return await self.request("save_model", model=model)

    async def get_model_metadata(self) -> Result:
        return await self.request("get_model_metadata")

    async def close(self) -> None:
        await self.session.aclose()


class LocalGatewayClient:
    """Calls `WordTableGateway` in process, for the CLI and tests."""

    def __init__(self, gateway: WordTableGateway | None = None) -> None:
        self.gateway = gateway or WordTableGateway()

    async def get_schema(self) -> Result:
        return self.gateway.get_schema()

    async def get_count(self) -> Result:
        return self.gateway.get_count()

    async def get_batch(self, offset: int, limit: int) -> Result:
        return self.gateway.get_batch(offset, limit)

    async def save_model(self, model: dict[str, Any]) -> Result:
        return self.gateway.save_model_metadata(model)

    async def get_model_metadata(self) -> Result:
        return self.gateway.get_latest_model_metadata()

    async def close(self) -> None:
        return None

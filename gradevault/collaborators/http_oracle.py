from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from gradevault.domain.models import MAX_SCORE, MIN_SCORE
from gradevault.errors import AuthorizationDenied, OracleError, OracleTimeout
from gradevault.utils.logging import get_logger

log = get_logger(__name__)


class HttpOracle:
    """
    Client for an encryption/reveal relayer over HTTP.

    - `POST {base}/encrypt` with `{"value": score}` returns `{"handle": "0x..."}`.
    - `POST {base}/reveal` with `{"handle": ..., "authorization": ...}` returns
      `{"value": score}`.
    - 401/403 map to AuthorizationDenied, client timeouts to OracleTimeout,
      anything else unexpected to OracleError.

    No retries happen here; retrying a reveal is the caller's decision.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpOracle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # --------------- Public API ---------------
    async def encrypt(self, score: int) -> str:
        if not MIN_SCORE <= score <= MAX_SCORE:
            raise ValueError(f"score must be within {MIN_SCORE}..{MAX_SCORE}, got {score}")
        payload = await self._post("encrypt", {"value": score})
        handle = payload.get("handle")
        if not isinstance(handle, str) or not handle:
            raise OracleError("relayer returned no ciphertext handle")
        return handle

    async def reveal(self, ciphertext_handle: str, authorization: Any = None) -> int:
        payload = await self._post(
            "reveal", {"handle": ciphertext_handle, "authorization": authorization}
        )
        value = payload.get("value")
        if isinstance(value, bool) or not isinstance(value, int):
            raise OracleError(f"relayer returned a non-integer plaintext: {value!r}")
        return value

    # --------------- Internal ---------------
    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self._base_url}/{path}"
        try:
            resp = await self._client.post(url, json=body)
        except httpx.TimeoutException as exc:
            raise OracleTimeout(f"relayer did not answer {path} in time") from exc
        except httpx.TransportError as exc:
            raise OracleError(f"relayer unreachable: {exc}") from exc

        if resp.status_code in (401, 403):
            raise AuthorizationDenied(f"HTTP {resp.status_code} from relayer: {resp.text[:200]}")
        if resp.status_code == 504:
            raise OracleTimeout("relayer gateway timeout")
        if resp.status_code != 200:
            raise OracleError(f"HTTP {resp.status_code} from relayer: {resp.text[:200]}")
        try:
            payload = resp.json()
        except ValueError as exc:
            raise OracleError("relayer returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise OracleError("relayer returned an unexpected payload")
        if "error" in payload:
            raise OracleError(f"relayer error: {payload['error']}")
        log.debug("Relayer call succeeded", extra={"path": path})
        return payload


__all__ = ["HttpOracle"]

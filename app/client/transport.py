from __future__ import annotations

import httpx

from app.client.errors import StoreError


def _normalize_error(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return exc.__class__.__name__


async def api_request(
    http: httpx.AsyncClient,
    method: str,
    path: str,
    token: str | None = None,
    **kwargs,
) -> dict:
    headers = dict(kwargs.pop("headers", None) or {})
    if token:
        headers["Authorization"] = f"Bearer {token}"

    try:
        response = await http.request(method, path, headers=headers, **kwargs)
    except httpx.HTTPError as exc:
        raise StoreError(_normalize_error(exc)) from exc

    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    if response.is_error:
        message = payload.get("error") or (
            f"request failed with status {response.status_code}"
        )
        raise StoreError(message, status_code=response.status_code)
    return payload

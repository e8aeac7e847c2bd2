# src/eduquest/rewards/http_ledger.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import LedgerError

logger = logging.getLogger(__name__)

AWARD_CURRENCY_PATH = "award-playcoins"
AWARD_XP_PATH = "update-xp-level"


def _make_timeout(timeout_seconds: float) -> httpx.Timeout:
    """
    Connect fast, allow the functions a bit longer to respond.

    The ledger is on the request path of every completion, so never wait forever.
    """
    total = max(1.0, float(timeout_seconds))
    return httpx.Timeout(connect=min(5.0, total), read=total, write=total, pool=min(5.0, total))


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text.strip()[:200] or resp.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return resp.reason_phrase


class HttpRewardLedger:
    """
    RewardLedger backed by the backend's HTTP functions.

    - add_currency -> POST {base}/award-playcoins  {user_id, amount, source_type, source_id, description}
    - add_xp       -> POST {base}/update-xp-level  {user_id, xp_amount, source}

    Transport errors and non-2xx responses raise LedgerError.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url or not base_url.strip():
            raise RuntimeError("Ledger base URL is not set. Set EDUQUEST_LEDGER_BASE_URL in your .env.")

        headers = {"Content-Type": "application/json"}
        if api_key and api_key.strip():
            headers["Authorization"] = f"Bearer {api_key.strip()}"

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            headers=headers,
            timeout=_make_timeout(timeout_seconds),
            transport=transport,
        )
        # Last level reported by update-xp-level per user.
        self._levels: dict[str, int] = {}

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            raise LedgerError(f"{path}: {e.__class__.__name__}: {e}") from e

        if resp.status_code >= 400:
            raise LedgerError(f"{path}: HTTP {resp.status_code}: {_error_detail(resp)}")

        try:
            data = resp.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    async def add_currency(self, amount: int, *, user_id: str, source_id: str) -> None:
        data = await self._post(
            AWARD_CURRENCY_PATH,
            {
                "user_id": user_id,
                "amount": int(amount),
                "source_type": "task",
                "source_id": source_id,
                "description": f"Task reward ({source_id})",
            },
        )
        logger.info("Ledger: +%d currency user=%s balance=%s", amount, user_id, data.get("balance"))

    async def add_xp(self, amount: int, *, user_id: str, source_id: str) -> None:
        data = await self._post(
            AWARD_XP_PATH,
            {
                "user_id": user_id,
                "xp_amount": int(amount),
                "source": f"task:{source_id}",
            },
        )
        level = data.get("current_level")
        if isinstance(level, int):
            self._levels[user_id] = level
        if data.get("level_up"):
            logger.info("Ledger: user=%s levelled up to %s", user_id, level)
        logger.info("Ledger: +%d xp user=%s", amount, user_id)

    def level_of(self, user_id: str) -> int | None:
        """Level from the last XP response, or None if no XP was granted this session."""
        return self._levels.get(user_id)


def friendly_ledger_error_message(err: Exception) -> str:
    msg = str(err).strip() or "Reward ledger error."
    if "Ledger base URL is not set" in msg:
        return "Reward ledger is not configured. Set EDUQUEST_LEDGER_BASE_URL in .env (or EDUQUEST_LEDGER_MODE=memory)."
    if "HTTP 401" in msg or "HTTP 403" in msg:
        return "Reward ledger rejected the credentials. Check EDUQUEST_LEDGER_API_KEY."
    return msg

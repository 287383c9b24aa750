"""Company and annual-accounts lookup by Belgian VAT number."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

import httpx

from ..net.errors import InvalidVatNumber, ServerError
from ..net.request import send_with_deadline

if TYPE_CHECKING:  # pragma: no cover
    from ..core.cancellation import CancellationToken
    from .settings import Settings

LOGGER = logging.getLogger(__name__)

VAT_PATTERN = re.compile(r"^BE\d{10}$")
DEFAULT_LOOKUP_TIMEOUT = 30.0


@dataclass(slots=True)
class CompanyRecord:
    """Registry data for one company; either part is ``None`` when not JSON."""

    vat: str
    company: Any = None
    annual_accounts: Any = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["annualAccounts"] = payload.pop("annual_accounts")
        return payload


def normalize_vat(vat: str | None) -> str:
    """Upper-case ``vat`` and validate it.

    Raises:
        InvalidVatNumber: ``vat`` is not ``BE`` followed by ten digits.
    """

    candidate = (vat or "").strip().upper()
    if not VAT_PATTERN.match(candidate):
        raise InvalidVatNumber(details={"vat": vat})
    return candidate


class CompanyLookup:
    """Fetches the company record and its most recent annual accounts concurrently."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        *,
        timeout: float = DEFAULT_LOOKUP_TIMEOUT,
    ) -> None:
        self._client = client
        self._settings = settings
        self._timeout = timeout

    async def lookup(self, vat: str, *, token: CancellationToken | None = None) -> CompanyRecord:
        normalized = normalize_vat(vat)
        base = self._settings.company_api_url.rstrip("/")
        company_response, accounts_response = await asyncio.gather(
            self._fetch(f"{base}/{normalized}", token),
            self._fetch(f"{base}/{normalized}/annual-accounts/most-recent", token),
        )
        _raise_for_status(company_response, "Company")
        _raise_for_status(accounts_response, "Accounts")
        LOGGER.debug("Company lookup for %s succeeded", normalized)
        return CompanyRecord(
            vat=normalized,
            company=_json_or_none(company_response),
            annual_accounts=_json_or_none(accounts_response),
        )

    async def _fetch(self, url: str, token: CancellationToken | None) -> httpx.Response:
        return await send_with_deadline(self._client, "GET", url, timeout=self._timeout, token=token)


def _raise_for_status(response: httpx.Response, label: str) -> None:
    if response.is_success:
        return
    LOGGER.warning("%s fetch failed with status %s", label, response.status_code)
    raise ServerError(
        status=response.status_code,
        message=f"{label} fetch failed: {response.text}",
    )


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


__all__ = ["CompanyLookup", "CompanyRecord", "VAT_PATTERN", "normalize_vat"]

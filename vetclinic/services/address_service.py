import logging
from typing import Optional

import httpx

from .. import schemas
from ..config import get_settings
from ..validators import normalize_cep

logger = logging.getLogger(__name__)


class AddressLookupService:
    """Postal code (CEP) lookup against ViaCEP. Every failure means "no result"."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url)
        async with httpx.AsyncClient(timeout=get_settings().address_lookup_timeout) as client:
            return await client.get(url)

    async def lookup(self, cep: str) -> Optional[schemas.AddressLookupResponse]:
        digits = normalize_cep(cep)
        if digits is None:
            return None
        url = get_settings().address_lookup_url.format(cep=digits)
        try:
            response = await self._get(url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Address lookup failed for CEP {digits}: {e}")
            return None

        # ViaCEP answers 200 with {"erro": true} for unknown codes
        if not isinstance(payload, dict) or payload.get("erro"):
            return None
        return schemas.AddressLookupResponse(
            cep=digits,
            street=payload.get("logradouro") or None,
            neighborhood=payload.get("bairro") or None,
            city=payload.get("localidade") or None,
            state=payload.get("uf") or None,
        )


address_service = AddressLookupService()

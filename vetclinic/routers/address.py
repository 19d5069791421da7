# vetclinic/routers/address.py
from fastapi import APIRouter, Depends

from .. import schemas, security
from ..errors import NotFound
from ..services.address_service import address_service

router = APIRouter(
    prefix="/address",
    tags=["Address"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Address not found"}},
)


@router.get("/{cep}", response_model=schemas.AddressLookupResponse)
async def lookup_address(cep: str):
    """Prefill street, neighborhood, city and state from a postal code."""
    address = await address_service.lookup(cep)
    if address is None:
        raise NotFound("Address", detail="Address not found.")
    return address

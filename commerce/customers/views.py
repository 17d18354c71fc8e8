# module commerce.customers.views
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, UploadFile

from commerce import config
from commerce.utils.security import require_customer
from commerce.utils.rate_limit import optional_rate_limit, general_rate_limit
from . import service as customers_service
from .models import ProfileUpdateRequest

api_router = APIRouter(prefix="/api/v1/customers", tags=["Customers API"], dependencies=[Depends(general_rate_limit)])

@api_router.get("/profile")
def get_profile(customer: Dict[str, Any] = Depends(require_customer)):
    return {"success": True, "customer": customers_service.get_profile(customer)}

@api_router.patch("/profile")
async def update_profile(req: ProfileUpdateRequest, customer: Dict[str, Any] = Depends(require_customer)):
    """Met à jour name/address/phone; le compte de facturation reçoit uniquement les champs modifiés."""
    updated = await customers_service.update_profile(customer, req.model_dump(exclude_unset=True))
    return {"success": True, "customer": updated}

@api_router.post("/profile-picture", dependencies=[Depends(optional_rate_limit(times=5, seconds=3600))])
async def upload_profile_picture(
    profilePicture: Optional[UploadFile] = File(None),
    customer: Dict[str, Any] = Depends(require_customer),
):
    """
    Upload multipart (champ profilePicture).
    - Images uniquement (image/*), 5 Mo maximum
    - Rate limit: 5 uploads par heure
    - Réponse: { success, url } (URL signée temporaire)
    """
    data = b""
    filename = None
    content_type = None
    if profilePicture is not None:
        # lire une tranche au-delà de la limite suffit à détecter un fichier trop gros
        data = await profilePicture.read(config.MAX_UPLOAD_BYTES + 1)
        filename = profilePicture.filename
        content_type = profilePicture.content_type
    url = await customers_service.upload_profile_picture(
        customer, data, filename=filename, content_type=content_type
    )
    return {"success": True, "url": url}

@api_router.get("/profile-picture")
async def get_profile_picture(customer: Dict[str, Any] = Depends(require_customer)):
    url = await customers_service.get_profile_picture_url(customer)
    return {"success": True, "url": url}

@api_router.delete("/account")
async def delete_account(customer: Dict[str, Any] = Depends(require_customer)):
    await customers_service.delete_account(customer)
    return {"success": True, "message": "Account deleted successfully"}

"""Citizen profile endpoint backed by the family registry."""

from dataclasses import dataclass

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portal.core.deps import get_db, get_linked_citizen_session, get_registry_client
from portal.core.errors import NotFoundError
from portal.db.models import CitizenSession
from portal.schemas.auth import ProfileRead
from portal.services import identity_service, registry_service
from portal.services.registry_service import FamilyRegistryClient
from portal.utils.normalization import mask_phone

router = APIRouter(prefix="/user", tags=["user"])


@dataclass
class ProfileSource:
    document_id: str
    fallback: dict


def get_profile_source(
    session: CitizenSession = Depends(get_linked_citizen_session),
    db: Session = Depends(get_db),
) -> ProfileSource:
    """Resolve the document id and stored fallback fields (runs in the threadpool)."""
    citizen = identity_service.get_citizen(db, session.citizen_id)
    document_id = session.identity_document_id or (citizen.identity_document_id if citizen else None)
    if not document_id:
        raise NotFoundError("No identity document on file")

    return ProfileSource(
        document_id=document_id,
        fallback={
            "name": citizen.name if citizen else None,
            "name_hi": citizen.name_hi if citizen else None,
            "phone_masked": mask_phone(citizen.phone) if citizen else None,
        },
    )


@router.get("/me", response_model=ProfileRead)
async def me(
    source: ProfileSource = Depends(get_profile_source),
    registry: FamilyRegistryClient = Depends(get_registry_client),
):
    """Household profile for the linked citizen."""
    profile = await registry_service.lookup_profile(registry, source.document_id, source.fallback)
    return ProfileRead(identity_document_id=source.document_id, profile=profile)

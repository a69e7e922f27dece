"""Onboarding state for clients that do not follow redirects."""

from fastapi import APIRouter, Request

from portal.core.onboarding import OnboardingSignals, derive_state, redirect_for
from portal.schemas.session import OnboardingStateRead

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


@router.get("/state", response_model=OnboardingStateRead)
def onboarding_state(request: Request):
    state = derive_state(OnboardingSignals.from_cookies(request.cookies))
    return OnboardingStateRead(state=state.value, redirect_to=redirect_for(state))

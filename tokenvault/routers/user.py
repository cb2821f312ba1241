from fastapi import APIRouter, Depends

from tokenvault.core.tokens import Principal
from tokenvault.dependencies.auth import get_current_principal


user_router = APIRouter(prefix="/users", tags=["users"])


@user_router.get("/me")
def get_me(principal: Principal = Depends(get_current_principal)):
    return {"message": "OK", "user": {"id": str(principal.id), "email": principal.identity}}

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials

from bookloans.api.deps import Services, bearer_scheme, get_services, request_context
from bookloans.schemas import schemas
from bookloans.services.errors import Unauthorized
from bookloans.services.identity import RequestContext

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/signup", response_model=schemas.AuthPayload)
def signup(body: schemas.SignUp, services: Services = Depends(get_services)):
    user, token = services.accounts.signup(body.name, body.email, body.password)
    return {"token": token, "user": user}

@router.post("/login", response_model=schemas.AuthPayload)
def login(body: schemas.Login, services: Services = Depends(get_services)):
    user, token = services.accounts.login(body.email, body.password)
    return {"token": token, "user": user}

@router.post("/logout")
def logout(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
           services: Services = Depends(get_services)):
    if credentials is None or not services.accounts.logout(credentials.credentials):
        raise Unauthorized("Invalid token")
    return {"ok": True}

@router.get("/me", response_model=schemas.UserOut)
def me(ctx: RequestContext = Depends(request_context), services: Services = Depends(get_services)):
    if ctx.identity is None:
        raise Unauthorized()
    return services.accounts.get_user(ctx, ctx.identity.user_id)

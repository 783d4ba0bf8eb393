from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field

from virtual_room.models.user import User
from virtual_room.services.auth import (
    TokenPair,
    create_tokens,
    decode_token,
    get_current_user,
    hash_password,
    verify_password,
)


router = APIRouter()


class SignupBody(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=8)

@router.post("/signup", response_model=TokenPair)
def signup(body: SignupBody) -> TokenPair:
    if User.objects(email=body.email).first():
        raise HTTPException(status_code=409, detail="Email already registered")
    # Self-service accounts are always students; staff are provisioned separately
    user = User(name=body.name, email=body.email, password=hash_password(body.password))
    user.save()
    return create_tokens(user)


@router.post("/login", response_model=TokenPair)
def login(form_data: OAuth2PasswordRequestForm = Depends()) -> TokenPair:
    user = User.objects(email=form_data.username).first()
    # Same answer for unknown email and wrong password
    if not user or not verify_password(form_data.password, user.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return create_tokens(user)


class RefreshBody(BaseModel):
    refresh_token: str

@router.post("/refresh", response_model=TokenPair)
def refresh_token(body: RefreshBody) -> TokenPair:
    return create_tokens(decode_token(body.refresh_token, "refresh"))


@router.get("/me")
def me(current_user: User = Depends(get_current_user)) -> dict:
    return current_user.to_output()


@router.post("/logout")
def logout(current_user: User = Depends(get_current_user)) -> dict:
    # Bumping the version invalidates every token issued so far
    current_user.token_version = str(int(current_user.token_version) + 1)
    current_user.save()
    return {"status": True}

import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError

from crud import require_db, now
from logging_setup import get_logger
from schemas import SignupRequest, LoginRequest, ChangePasswordRequest, PublicUser

logger = get_logger("auth")

# Environment & Security setup
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 12))
MIN_PASSWORD_LENGTH = 6
MIN_MOBILE_LENGTH = 10

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

router = APIRouter(prefix="/api", tags=["auth"])


# ----------------------- Utility Functions -----------------------

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def public_user(user: dict) -> dict:
    return PublicUser(
        id=str(user["_id"]),
        fullName=user.get("fullName", ""),
        organizationName=user.get("organizationName", ""),
        email=user.get("email", ""),
        mobileNo=user.get("mobileNo", ""),
    ).model_dump()


def validate_signup(req: SignupRequest) -> Optional[str]:
    """Return the first signup problem as a user-facing message, or None."""
    if not all(v.strip() for v in (req.fullName, req.organizationName, req.email, req.mobileNo, req.password)):
        return "Please fill in all fields"
    if "@" not in req.email.strip():
        return "Please enter a valid email"
    if len(req.mobileNo.strip()) < MIN_MOBILE_LENGTH:
        return "Please enter a valid mobile number"
    if len(req.password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    return None


# ----------------------- Auth Helpers -----------------------
def get_current_user(token: str = Depends(oauth2_scheme), database=Depends(require_db)):
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id: Optional[str] = payload.get("sub")
        if not user_id:
            raise HTTPException(status_code=401, detail="Invalid token")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        user = database["user"].find_one({"_id": ObjectId(user_id)})
    except InvalidId:
        user = None
        email = payload.get("email")
        if email:
            user = database["user"].find_one({"email": email})
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


# ----------------------- Auth Endpoints -----------------------
@router.post("/auth/signup", status_code=status.HTTP_201_CREATED)
def signup(req: SignupRequest, database=Depends(require_db)):
    problem = validate_signup(req)
    if problem:
        raise HTTPException(status_code=400, detail=problem)

    email = normalize_email(req.email)
    if database["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Email already registered")

    doc = {
        "fullName": req.fullName.strip(),
        "organizationName": req.organizationName.strip(),
        "email": email,
        "mobileNo": req.mobileNo.strip(),
        "password_hash": get_password_hash(req.password),
        "createdAt": now(),
        "updatedAt": now(),
    }
    try:
        database["user"].insert_one(doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already registered")
    logger.info("User created: %s", email)
    return {"message": "Account created successfully", "user": public_user(doc)}


@router.post("/auth/login")
def login(payload: LoginRequest, database=Depends(require_db)):
    if not payload.email.strip() or not payload.password:
        raise HTTPException(status_code=400, detail="Please fill in all fields")
    if "@" not in payload.email:
        raise HTTPException(status_code=400, detail="Please enter a valid email")

    email = normalize_email(payload.email)
    user = database["user"].find_one({"email": email})
    if not user:
        logger.info("Login failed, unknown email: %s", email)
        raise HTTPException(status_code=401, detail="Email not found. Please sign up first")
    if not verify_password(payload.password, user.get("password_hash", "")):
        logger.info("Login failed, bad password: %s", email)
        raise HTTPException(status_code=401, detail="Incorrect password")

    token = create_access_token({"sub": str(user["_id"]), "email": user["email"]})
    logger.info("User logged in: %s", email)
    return {
        "message": "Login successful",
        "user": public_user(user),
        "access_token": token,
        "token_type": "bearer",
    }


@router.get("/auth/me")
def me(current=Depends(get_current_user)):
    return {"user": public_user(current)}


@router.post("/auth/change-password")
def change_password(
    payload: ChangePasswordRequest,
    current=Depends(get_current_user),
    database=Depends(require_db),
):
    if not payload.currentPassword or not payload.newPassword:
        raise HTTPException(status_code=400, detail="Please fill all password fields")
    if payload.newPassword != payload.confirmPassword:
        raise HTTPException(status_code=400, detail="New passwords do not match")
    if len(payload.newPassword) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if not verify_password(payload.currentPassword, current.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Incorrect password")

    database["user"].update_one(
        {"_id": current["_id"]},
        {"$set": {"password_hash": get_password_hash(payload.newPassword), "updatedAt": now()}},
    )
    logger.info("Password changed: %s", current.get("email"))
    return {"message": "Password changed successfully"}


@router.get("/users/{email}")
def get_user(email: str, database=Depends(require_db)):
    user = database["user"].find_one({"email": normalize_email(email)})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"user": public_user(user)}

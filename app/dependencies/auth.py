from fastapi import Header, HTTPException, status, Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from functools import lru_cache
import jwt  # PyJWT
import logging
import os
from typing import Optional
from app.db.session import get_db
from app.models.profile import Profile
from app.services.trial_eligibility import normalize_email

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ("HS256", "ES256", "RS256")


@lru_cache(maxsize=4)
def get_jwks_client(supabase_url: str) -> jwt.PyJWKClient:
    """One JWKS client per Supabase project; PyJWKClient caches the keys itself."""
    return jwt.PyJWKClient(f"{supabase_url}/auth/v1/.well-known/jwks.json", cache_keys=True, lifespan=3600)


def _extract_bearer(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header"
        )
    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid header format. Expected 'Bearer <token>'"
        )
    token = authorization[len("Bearer "):].strip()
    # Frontends sometimes send the literal string of an unset variable
    if not token or token.lower() in ("null", "undefined", "none") or token.count(".") != 2:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token format"
        )
    return token


def verify_supabase_token(authorization: Optional[str] = Header(None)) -> dict:
    """
    Verify a Supabase access token and return its claims.
    HS256 tokens are checked against SUPABASE_JWT_SECRET; ES256/RS256 tokens
    against the project's JWKS.
    """
    token = _extract_bearer(authorization)

    try:
        algo = jwt.get_unverified_header(token).get("alg")
    except jwt.DecodeError as e:
        logger.info("Rejected token with undecodable header: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token header"
        )

    if algo not in SUPPORTED_ALGORITHMS:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unsupported token algorithm: {algo}"
        )

    if algo == "HS256":
        key = os.getenv("SUPABASE_JWT_SECRET")
        if not key:
            logger.error("SUPABASE_JWT_SECRET is missing")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Server misconfiguration: SUPABASE_JWT_SECRET not set"
            )
    else:
        supabase_url = os.getenv("SUPABASE_URL")
        if not supabase_url:
            logger.error("SUPABASE_URL is missing for %s verification", algo)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Server misconfiguration: SUPABASE_URL not set"
            )
        try:
            key = get_jwks_client(supabase_url).get_signing_key_from_jwt(token).key
        except jwt.PyJWKClientConnectionError as e:
            logger.error("Could not fetch Supabase JWKS: %s", e)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Authentication service temporarily unavailable. Please try again in a moment."
            )
        except jwt.PyJWKClientError as e:
            logger.info("No signing key for token: %s", e)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token signature"
            )

    try:
        return jwt.decode(token, key, algorithms=[algo], audience="authenticated")
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired"
        )
    except jwt.InvalidTokenError as e:
        logger.info("%s verification failed: %s", algo, e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token signature"
        )


def _load_or_create_profile(payload: dict, db: Session) -> Profile:
    user_id = payload.get("sub")
    email = payload.get("email")
    if not user_id or not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing sub or email claim"
        )

    try:
        profile = db.get(Profile, user_id)
        if profile is not None:
            if not profile.email_normalized:
                profile.email_normalized = normalize_email(profile.email)
                db.commit()
            return profile

        # Lazy sync: first request after Supabase signup creates the profile
        profile = Profile(id=user_id, email=email, email_normalized=normalize_email(email))
        db.add(profile)
        try:
            db.commit()
            logger.info("Created profile for user %s (lazy sync)", user_id)
        except IntegrityError:
            # A concurrent request created it first
            db.rollback()
            profile = db.get(Profile, user_id)
            if profile is None:
                raise
        return profile
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Database error while loading profile %s: %s", user_id, e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database temporarily unavailable. Please try again in a moment."
        )


def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> Profile:
    """Main dependency for authenticated routes: the caller's profile."""
    payload = verify_supabase_token(authorization)
    return _load_or_create_profile(payload, db)


def get_optional_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> Optional[Profile]:
    """Like get_current_user, but anonymous callers (or bad tokens) get None."""
    if not authorization:
        return None
    try:
        payload = verify_supabase_token(authorization)
    except HTTPException as e:
        if e.status_code == status.HTTP_401_UNAUTHORIZED:
            return None
        raise
    return _load_or_create_profile(payload, db)


def is_admin(email: Optional[str]) -> bool:
    admins = {normalize_email(e) for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()}
    return bool(email) and normalize_email(email) in admins

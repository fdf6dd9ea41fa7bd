import os

from fastapi import Header, HTTPException
from jose import JWTError, jwt

from bambora_service.models import Customer


def verify_token(authorization: str = Header(...)):
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Unsupported authorization scheme")
        return jwt.decode(token, os.getenv("JWT_SECRET"), algorithms=["HS256"])
    except (ValueError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")


def load_owner(db, claims):
    """Return the customer named by the token's subject, or None when anonymous."""
    subject = claims.get("sub") if isinstance(claims, dict) else None
    if not subject:
        return None

    customer = db.get(Customer, subject)
    if customer is None:
        customer = Customer(id=subject, email=claims.get("email"), is_guest=bool(claims.get("guest")))
        db.add(customer)
        db.commit()
    return customer

# rental_lifecycle/auth.py
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models import AppUser


@dataclass(frozen=True)
class Principal:
    user_id: int
    email: str


def get_principal(request: Request, db: Session = Depends(get_db)) -> Principal:
    """
    The upstream auth layer has already authenticated the caller and forwards
    the user id in a trusted header. This only checks that the user exists.
    """
    raw = (request.headers.get(settings.actor_header) or "").strip()
    if not raw:
        raise HTTPException(status_code=401, detail=f"Missing {settings.actor_header} header")
    try:
        user_id = int(raw)
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Invalid {settings.actor_header} header")

    user = db.get(AppUser, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return Principal(user_id=int(user.id), email=str(user.email))

from typing import List

from sqlalchemy.orm import Session
from app import models
from app.utils.security import get_password_hash


def create_user(db: Session, *, name: str, email: str, password: str, roles: List[str]):
    db_user = models.User(
        name=name,
        email=email,
        password_hash=get_password_hash(password),
        roles=roles,
        is_active=True,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user

def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()

def get_user(db: Session, user_id: int):
    return db.query(models.User).filter(models.User.id == user_id).first()

"""Accès aux comptes utilisateurs créés après paiement.
Les comptes sont indexés par email normalisé (minuscules); la création est atomique
par email (put_if_absent), deux inscriptions simultanées ne peuvent pas réussir toutes les deux.
"""
from typing import Optional

from paygate.infra.store import KeyValueStore
from paygate.signup.models import User


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserRepository:
    def __init__(self, store: KeyValueStore[User]):
        self.store = store

    def get_by_email(self, email: str) -> Optional[User]:
        return self.store.get(normalize_email(email))

    def exists(self, email: str) -> bool:
        return self.get_by_email(email) is not None

    def create(self, user: User) -> bool:
        """Insère le compte; False si un compte existe déjà pour cet email."""
        return self.store.put_if_absent(normalize_email(user.email), user)

    def count(self) -> int:
        return len(self.store)

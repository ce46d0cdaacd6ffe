"""
Modulo di sicurezza per credenziali e token di sessione
Progetto: Service Station (Stazione di Servizio)

Funzioni per hashing di password e PIN e generazione dei token opachi.
"""

import re
import secrets

from passlib.context import CryptContext

# Context per hashing password e PIN
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

PIN_PATTERN = re.compile(r"^\d{4}$")


def hash_password(password: str) -> str:
    """
    Hasha una password (o un PIN) in chiaro.

    Args:
        password: Password in chiaro

    Returns:
        Password hashata
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verifica una password in chiaro contro una hashata.

    Args:
        plain_password: Password in chiaro
        hashed_password: Password hashata

    Returns:
        True se la password corrisponde, False altrimenti
    """
    return pwd_context.verify(plain_password, hashed_password)


def is_valid_pin(pin: str) -> bool:
    """Un PIN operaio è composto da esattamente 4 cifre."""
    return bool(PIN_PATTERN.match(pin or ""))


def generate_session_token() -> str:
    """Genera un token di sessione opaco, non indovinabile."""
    return secrets.token_urlsafe(32)


# Export delle funzioni
__all__ = [
    "hash_password",
    "verify_password",
    "is_valid_pin",
    "generate_session_token",
]

"""Password hashing with bcrypt, executed off the event loop."""

import asyncio

import bcrypt

DEFAULT_ROUNDS = 12


def _hash(password: str, rounds: int) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def _check(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


async def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash a password using bcrypt"""
    return await asyncio.to_thread(_hash, password, rounds)


async def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash (constant-time inside bcrypt)"""
    return await asyncio.to_thread(_check, password, password_hash)

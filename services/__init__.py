"""
Auth services wired together once per process.

`build_auth` reads secrets, lifetimes and work factors from a config mapping
(the Flask app config) and returns the bundle the routes and decorators use.
"""
from __future__ import annotations

from dataclasses import dataclass

from models.token_store import RefreshTokenStore
from models.user_store import UserRepository
from services.credentials import CredentialService
from services.gate import AuthorizationGate
from services.sessions import AuthResult, ClientInfo, SessionManager
from utils.security import PasswordHasher, TokenSigner, utcnow

__all__ = ["AuthComponents", "AuthResult", "ClientInfo", "build_auth"]


@dataclass
class AuthComponents:
    hasher: PasswordHasher
    signer: TokenSigner
    users: UserRepository
    tokens: RefreshTokenStore
    sessions: SessionManager
    credentials: CredentialService
    gate: AuthorizationGate


def build_auth(config, storage, clock=utcnow) -> AuthComponents:
    hasher = PasswordHasher(
        time_cost=config.get("PASSWORD_TIME_COST", 3),
        memory_cost=config.get("PASSWORD_MEMORY_COST", 65536),
        parallelism=config.get("PASSWORD_PARALLELISM", 4),
    )
    signer = TokenSigner(
        access_secret=config["JWT_ACCESS_SECRET"],
        refresh_secret=config["JWT_REFRESH_SECRET"],
        access_ttl=config["ACCESS_TOKEN_EXPIRES"],
        refresh_ttl=config["REFRESH_TOKEN_EXPIRES"],
        algorithm=config.get("JWT_ALGORITHM", "HS256"),
        issuer=config.get("JWT_ISSUER", "campus-market-auth"),
        clock=clock,
    )
    users = UserRepository(storage)
    tokens = RefreshTokenStore(storage, cap=config.get("REFRESH_TOKEN_CAP", 10), clock=clock)
    sessions = SessionManager(signer, tokens, users)
    return AuthComponents(
        hasher=hasher,
        signer=signer,
        users=users,
        tokens=tokens,
        sessions=sessions,
        credentials=CredentialService(users, hasher, sessions, tokens, clock),
        gate=AuthorizationGate(signer, users),
    )

"""
Authentification par bearer token JWT.

Les tokens sont émis par le service d'authentification externe ; ici on vérifie
seulement la signature et on expose l'identité (sub) et le rôle (role) portés
par le token. Les endpoints de présences exigent le rôle administrateur.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from school_erp.config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Acteur authentifié, crédité comme auteur des présences saisies."""
    id: int
    role: str
    email: Optional[str] = None


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """Décode le token du header Authorization. 401 si absent, invalide ou expiré."""
    if credentials is None or not credentials.credentials.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token d'authentification requis.")

    try:
        payload = jwt.decode(
            credentials.credentials.strip(),
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except jwt.PyJWTError as exc:
        logger.debug("Token rejeté : %s", exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token invalide ou expiré.")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token invalide ou expiré.")

    role = payload.get("role")
    if not role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Rôle utilisateur introuvable.")

    return CurrentUser(id=user_id, role=role, email=payload.get("email"))


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Dépendance des routes d'administration : 403 si le rôle n'est pas administrateur."""
    if user.role != settings.ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permissions insuffisantes.")
    return user

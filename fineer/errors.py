"""
Exceptions partagées par le cache mémoire et le session store.

Politique: aucune relance automatique. Une erreur soit dégrade vers l'état sûr
(ANONYMOUS, pas d'entrée en cache), soit remonte à l'unique appelant qui a
initié l'opération.
"""


class FineerError(Exception):
    """Base de toutes les erreurs du package."""
    pass


class FetchError(FineerError):
    """La fonction de fetch du cache a échoué (cause chaînée dans __cause__)."""

    def __init__(self, key: str):
        super().__init__(f"Fetch failed for cache key '{key}'")
        self.key = key


class SessionError(FineerError):
    """Base des erreurs rapportées par les transitions de session."""
    pass


class LookupTransientError(SessionError):
    """La lecture du profil a échoué (réseau, permissions, timeout...)."""

    def __init__(self, uid: str):
        super().__init__(f"Profile lookup failed for uid={uid}")
        self.uid = uid


class ProfileNotFound(SessionError):
    """Identité Firebase valide mais aucun profil applicatif associé."""

    def __init__(self, uid: str):
        super().__init__(f"No application profile for uid={uid}")
        self.uid = uid


class ProviderError(SessionError):
    """Un appel au fournisseur d'authentification a échoué."""

    def __init__(self, operation: str):
        super().__init__(f"Auth provider call failed: {operation}")
        self.operation = operation


class AuthenticationError(FineerError):
    """Custom exception for authentication failures."""
    pass

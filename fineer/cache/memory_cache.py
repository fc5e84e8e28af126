"""
Cache mémoire avec coalescence des fetchs concurrents.

Ce module implémente un cache asynchrone générique, en mémoire de process,
pour éviter de relancer la même requête Firestore quand plusieurs composants
demandent le même jeu de données au même moment.

Architecture:
    - Cache-first: une entrée fraîche est servie sans aucune I/O
    - Coalescence: au plus un fetch en vol par clé; les appelants suivants
      attendent la fin de ce fetch au lieu d'en lancer un autre
    - Invalidation sélective: suppression ciblée après modifications

Le TTL est passé à chaque appel et n'est jamais stocké avec l'entrée: un
appelant peut exiger des données plus fraîches qu'un appelant précédent sans
invalider quoi que ce soit.

Asymétrie en cas d'échec:
    - L'appelant qui a déclenché le fetch reçoit FetchError
    - Les appelants en attente reçoivent ce qui est en cache à la fin du fetch,
      donc None si rien n'a été écrit (jamais l'erreur d'origine)

Exclusion mutuelle: le test puis la pose du marqueur "en vol" se font sans
aucun `await` intermédiaire; la boucle asyncio étant mono-thread, cela suffit.
Un portage multi-thread exigerait un verrou par clé.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from ..errors import FetchError

logger = logging.getLogger("cache.memory")

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 120.0


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    stored_at: float


class MemoryCache(Generic[T]):
    """
    Cache mémoire clé → valeur horodatée, avec un marqueur "en vol" par clé.

    Le marqueur est un asyncio.Event: sa présence dans `_in_flight` signale un
    fetch en cours, et `set()` réveille tous les appelants en attente.
    """

    def __init__(
        self,
        log_prefix: str = "MEMORY_CACHE",
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            log_prefix: Préfixe pour les logs (ex: "HR_CACHE", "PROFILE_CACHE")
            default_ttl_seconds: TTL utilisé quand l'appelant n'en fournit pas
            clock: Horloge monotone en secondes (injectable pour les tests)
        """
        self.log_prefix = log_prefix
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._in_flight: Dict[str, asyncio.Event] = {}
        self._counters = {"hits": 0, "misses": 0, "coalesced": 0, "failures": 0}

    def _ttl(self, ttl_seconds: Optional[float]) -> float:
        return self.default_ttl_seconds if ttl_seconds is None else ttl_seconds

    def _is_fresh(self, entry: Optional[CacheEntry[T]], ttl: float, now: float) -> bool:
        return entry is not None and (now - entry.stored_at) < ttl

    async def get_data(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        ttl_seconds: Optional[float] = None,
    ) -> Optional[T]:
        """
        Retourne la valeur en cache ou la récupère via `fetch_fn`.

        Args:
            key: Clé unique du jeu de données (ex: "employees", "attendance")
            fetch_fn: Fonction async sans argument qui produit la donnée
            ttl_seconds: Âge maximum accepté pour une entrée (défaut: 120s)

        Returns:
            La valeur fraîche, la valeur produite par le fetch, ou None pour un
            appelant en attente dont le fetch partagé n'a rien écrit.

        Raises:
            FetchError: si `fetch_fn` échoue (uniquement pour l'appelant qui a
                lancé le fetch; l'exception d'origine est dans __cause__)
        """
        ttl = self._ttl(ttl_seconds)
        now = self._clock()
        entry = self._entries.get(key)

        if self._is_fresh(entry, ttl, now):
            self._counters["hits"] += 1
            logger.debug(f"✅ [{self.log_prefix}] HIT: {key}")
            return entry.value

        settled = self._in_flight.get(key)
        if settled is not None:
            self._counters["coalesced"] += 1
            logger.info(f"⏳ [{self.log_prefix}] WAIT: {key} | fetch déjà en cours")
            await settled.wait()
            entry = self._entries.get(key)
            return entry.value if entry is not None else None

        # Pas d'await entre le test ci-dessus et la pose du marqueur
        settled = asyncio.Event()
        self._in_flight[key] = settled
        self._counters["misses"] += 1
        logger.info(f"❌ [{self.log_prefix}] MISS: {key} | fetch lancé")

        try:
            try:
                value = await fetch_fn()
            except Exception as e:
                self._counters["failures"] += 1
                logger.error(f"❌ [{self.log_prefix}] Erreur de fetch: {key} | Error: {e}")
                raise FetchError(key) from e

            self._entries[key] = CacheEntry(value=value, stored_at=now)
            logger.info(f"💾 [{self.log_prefix}] Stockage réussi: {key}")
            return value
        finally:
            if self._in_flight.get(key) is settled:
                del self._in_flight[key]
            settled.set()

    def invalidate(self, key: str) -> None:
        """
        Invalide une entrée de cache spécifique.

        Utilisé après les opérations CRUD pour forcer le rechargement. Un fetch
        en cours pour cette clé n'est pas interrompu et écrira son résultat.
        """
        removed = self._entries.pop(key, None) is not None
        logger.info(f"🗑️ [{self.log_prefix}] Invalidation: {key} | Deleted={removed}")

    def clear_all(self) -> None:
        """Vide toutes les entrées; les fetchs en cours ne sont pas touchés."""
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"🗑️ [{self.log_prefix}] Cache vidé: {count} entrées supprimées")

    def is_valid(self, key: str, ttl_seconds: Optional[float] = None) -> bool:
        return self._is_fresh(self._entries.get(key), self._ttl(ttl_seconds), self._clock())

    def is_loading(self, key: str) -> bool:
        return key in self._in_flight

    def stats(self) -> Dict[str, Any]:
        """
        Retourne les statistiques du cache.

        Utile pour le monitoring et le debugging.
        """
        return {
            "entries": len(self._entries),
            "in_flight": len(self._in_flight),
            **self._counters,
        }

"""
Stockage clé/valeur du process (paiements, jetons, utilisateurs, outbox).
- KeyValueStore: capacité injectée dans les composants (get/put/compare-and-swap).
- InMemoryStore: implémentation protégée par un verrou; chaque opération est atomique.
Les valeurs stockées sont des modèles immuables: toute mise à jour remplace la valeur.
"""
import threading
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

V = TypeVar("V")


class KeyValueStore(Generic[V]):
    def get(self, key: str) -> Optional[V]:
        raise NotImplementedError

    def put(self, key: str, value: V) -> None:
        raise NotImplementedError

    def put_if_absent(self, key: str, value: V) -> bool:
        """Insère seulement si la clé est libre. Retourne False si elle existe déjà."""
        raise NotImplementedError

    def compare_and_swap(self, key: str, expected: V, new: V) -> bool:
        """Remplace la valeur si elle est toujours égale à `expected`."""
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        raise NotImplementedError

    def delete_if(self, predicate: Callable[[str, V], bool]) -> int:
        """Supprime en une seule passe toutes les entrées qui vérifient le prédicat."""
        raise NotImplementedError

    def items(self) -> List[Tuple[str, V]]:
        """Copie instantanée des entrées (lecture sans verrou pour l'appelant)."""
        raise NotImplementedError

    def values(self) -> List[V]:
        return [v for _, v in self.items()]

    def __len__(self) -> int:
        return len(self.items())


class InMemoryStore(KeyValueStore[V]):
    def __init__(self) -> None:
        self._data: Dict[str, V] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: V) -> None:
        with self._lock:
            self._data[key] = value

    def put_if_absent(self, key: str, value: V) -> bool:
        with self._lock:
            if key in self._data:
                return False
            self._data[key] = value
            return True

    def compare_and_swap(self, key: str, expected: V, new: V) -> bool:
        with self._lock:
            current = self._data.get(key)
            if current is None or current != expected:
                return False
            self._data[key] = new
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def delete_if(self, predicate: Callable[[str, V], bool]) -> int:
        with self._lock:
            doomed = [k for k, v in self._data.items() if predicate(k, v)]
            for k in doomed:
                del self._data[k]
            return len(doomed)

    def items(self) -> List[Tuple[str, Any]]:
        with self._lock:
            return list(self._data.items())

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

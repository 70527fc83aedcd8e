from __future__ import annotations

import uuid
from typing import List, Protocol

from chirpy.service.errors import ChirpTooLongError, NotFoundError
from chirpy.storage.models import Chirp

MAX_CHIRP_LENGTH = 140
PROFANE_WORDS = frozenset({"kerfuffle", "sharbert", "fornax"})
_CENSORED = "****"


class ChirpStore(Protocol):
    def create_chirp(self, body: str, user_id: uuid.UUID) -> Chirp: ...

    def get_chirp(self, chirp_id: uuid.UUID) -> Chirp | None: ...

    def list_chirps(self) -> List[Chirp]: ...


def clean_body(body: str) -> str:
    """Replace profane words with asterisks.

    Words are split on whitespace and compared case-insensitively as whole
    words, so ``Sharbert!`` is left alone. The result is rejoined with single
    spaces.
    """
    words = body.split()
    return " ".join(_CENSORED if w.lower() in PROFANE_WORDS else w for w in words)


class ChirpService:
    def __init__(self, store: ChirpStore) -> None:
        self.store = store

    def publish(self, user_id: uuid.UUID, body: str) -> Chirp:
        if len(body) > MAX_CHIRP_LENGTH:
            raise ChirpTooLongError(
                "Chirp is too long", detail={"max_length": MAX_CHIRP_LENGTH}
            )
        return self.store.create_chirp(clean_body(body), user_id)

    def list_chirps(self) -> List[Chirp]:
        return self.store.list_chirps()

    def get_chirp(self, chirp_id: uuid.UUID) -> Chirp:
        chirp = self.store.get_chirp(chirp_id)
        if chirp is None:
            raise NotFoundError("chirp not found")
        return chirp

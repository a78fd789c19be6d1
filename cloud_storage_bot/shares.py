import shutil
import time
from typing import Iterable, List, Optional, Tuple

from .errors import InvalidShare, NamespaceNotFound, PersistenceUnavailable
from .namespaces import NamespaceManager, check_entry_name
from .tokens import SHARE_TOKEN_LENGTH, is_token, mint_token


class ShareManager:
    """One-shot share links: files stored under a freshly minted token.

    Shares reuse NamespaceManager for storage but live under their own root,
    so a share token can never collide with a user's namespace on disk.
    When `ttl_seconds` is set, shares older than that are hidden and can be
    removed with purge_expired(); by default shares never expire.
    """

    def __init__(self, namespaces: NamespaceManager, token_length: int = SHARE_TOKEN_LENGTH,
                 mint_retries: int = 3, ttl_seconds: Optional[float] = None):
        self.namespaces = namespaces
        self.token_length = token_length
        self.mint_retries = mint_retries
        self.ttl_seconds = ttl_seconds

    def _mint_unused_token(self) -> str:
        if self.mint_retries <= 0:
            return mint_token(self.token_length, self.namespaces.alphabet)

        for _ in range(self.mint_retries + 1):
            token = mint_token(self.token_length, self.namespaces.alphabet)
            if not self.namespaces.namespace_exists(token):
                return token
        raise PersistenceUnavailable("Could not mint an unused share token")

    def create_share(self, entries: Iterable[Tuple[str, bytes]]) -> str:
        """Store every (name, data) pair under a new token and return the token."""
        entries = list(entries)
        if not entries:
            raise InvalidShare("A share needs at least one file")
        # Fail before anything is written if any name is unsafe.
        for name, _ in entries:
            check_entry_name(name)

        token = self._mint_unused_token()
        self.namespaces.create_namespace(token)
        for name, data in entries:
            self.namespaces.put_entry(token, name, data)
        return token

    def is_expired(self, token: str, now: Optional[float] = None) -> bool:
        if self.ttl_seconds is None:
            return False
        path = self.namespaces.root / token
        try:
            created = path.stat().st_mtime
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot read share: {e}") from e
        return (now if now is not None else time.time()) - created > self.ttl_seconds

    def _require_live(self, token: str):
        if is_token(token, self.namespaces.alphabet) and self.is_expired(token):
            raise NamespaceNotFound("Share link has expired")

    def list_share(self, token: str) -> List[str]:
        self._require_live(token)
        return self.namespaces.list_entries(token)

    def get_share_entry(self, token: str, name: str) -> bytes:
        self._require_live(token)
        return self.namespaces.get_entry(token, name)

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Delete expired shares and return how many were removed."""
        if self.ttl_seconds is None:
            return 0

        removed = 0
        try:
            candidates = [p for p in self.namespaces.root.iterdir() if p.is_dir() and is_token(p.name, self.namespaces.alphabet)]
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot scan shares: {e}") from e

        for path in candidates:
            if self.is_expired(path.name, now):
                try:
                    shutil.rmtree(path)
                except OSError as e:
                    raise PersistenceUnavailable(f"Cannot remove share {path.name}: {e}") from e
                removed += 1
        return removed

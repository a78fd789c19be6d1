import logging
from typing import Iterable, List, Optional, Tuple

from .config import Settings
from .namespaces import NamespaceManager
from .registry import TokenRegistry
from .shares import ShareManager

logger = logging.getLogger(__name__)


class StorageManager:
    """Token-scoped storage shared by the bot and the web server.

    Bundles the token registry, the per-user namespaces and the share
    namespaces so front-ends get one explicit handle instead of reaching
    for a database file or a directory on their own.
    """

    def __init__(self, registry: TokenRegistry, namespaces: NamespaceManager, shares: ShareManager):
        self.registry = registry
        self.namespaces = namespaces
        self.shares = shares

    @classmethod
    def from_settings(cls, settings: Settings) -> 'StorageManager':
        registry = TokenRegistry(settings.database_path, token_length=settings.user_token_length)
        namespaces = NamespaceManager(settings.files_dir)
        shares = ShareManager(
            NamespaceManager(settings.shares_dir),
            token_length=settings.share_token_length,
            mint_retries=settings.mint_retries,
            ttl_seconds=settings.share_ttl_seconds,
        )
        logger.info(f"Storage ready: files={namespaces.root} shares={shares.namespaces.root}")
        return cls(registry, namespaces, shares)

    # Token registry

    def ensure_registered(self, identity: int):
        self.registry.ensure_registered(identity)

    def current_token(self, identity: int) -> Optional[str]:
        return self.registry.current_token(identity)

    def rotate_token(self, identity: int) -> str:
        return self.registry.rotate_token(identity)

    def open_upload(self, identity: int) -> Optional[str]:
        """Create the namespace for the identity's token and return the token.

        Returns None when the identity has no token yet.
        """
        token = self.registry.current_token(identity)
        if token is None:
            return None
        self.namespaces.create_namespace(token)
        return token

    # Identity-bound namespaces

    def namespace_exists(self, token: str) -> bool:
        return self.namespaces.namespace_exists(token)

    def create_namespace(self, token: str):
        self.namespaces.create_namespace(token)

    def list_entries(self, token: str) -> List[str]:
        return self.namespaces.list_entries(token)

    def put_entry(self, token: str, name: str, data: bytes):
        self.namespaces.put_entry(token, name, data)

    def get_entry(self, token: str, name: str) -> bytes:
        return self.namespaces.get_entry(token, name)

    # Ephemeral shares

    def create_share(self, entries: Iterable[Tuple[str, bytes]]) -> str:
        return self.shares.create_share(entries)

    def list_share(self, token: str) -> List[str]:
        return self.shares.list_share(token)

    def get_share_entry(self, token: str, name: str) -> bytes:
        return self.shares.get_share_entry(token, name)

    def purge_expired_shares(self) -> int:
        return self.shares.purge_expired()

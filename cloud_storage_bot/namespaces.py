import os
import tempfile
from pathlib import Path
from typing import List

from .errors import EntryNotFound, NamespaceNotFound, PersistenceUnavailable, UnsafeName
from .tokens import ALPHABET, is_token

# Partial uploads are written here and renamed into their namespace.
STAGING_DIR = ".partial"

MAX_NAME_BYTES = 255


def check_entry_name(name: str) -> str:
    """Reject names that are not a single plain path component."""
    if not name or name in (".", ".."):
        raise UnsafeName(f"Invalid file name: {name!r}")
    if "/" in name or "\\" in name or "\x00" in name:
        raise UnsafeName(f"File name must not contain path separators: {name!r}")
    if os.path.isabs(name) or os.path.splitdrive(name)[0]:
        raise UnsafeName(f"File name must not be absolute: {name!r}")
    if len(name.encode("utf-8", "surrogateescape")) > MAX_NAME_BYTES:
        raise UnsafeName(f"File name is longer than {MAX_NAME_BYTES} bytes")
    return name


class NamespaceManager:
    """Flat file namespaces stored as one directory per token under `root`."""

    def __init__(self, root: str, alphabet: str = ALPHABET):
        self.root = Path(root).resolve()
        self.alphabet = alphabet
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / STAGING_DIR).mkdir(exist_ok=True)
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot create storage root {self.root}: {e}") from e

    def _namespace_path(self, token: str) -> Path:
        if not is_token(token, self.alphabet):
            raise UnsafeName(f"Invalid token: {token!r}")
        return self.root / token

    def _entry_path(self, token: str, name: str) -> Path:
        check_entry_name(name)
        namespace = self.require_namespace(token)
        path = namespace / name
        try:
            escapes = path.resolve().parent != namespace.resolve()
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot resolve {name!r}: {e}") from e
        if escapes:
            raise UnsafeName(f"File name escapes namespace: {name!r}")
        return path

    def namespace_exists(self, token: str) -> bool:
        """True iff a namespace was created for exactly this token."""
        if not is_token(token, self.alphabet):
            return False
        try:
            if not (self.root / token).is_dir():
                return False
            # Exact name match keeps lookups case-sensitive on any filesystem.
            with os.scandir(self.root) as it:
                return any(entry.name == token for entry in it)
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot read storage root {self.root}: {e}") from e

    def create_namespace(self, token: str):
        """Create the namespace for `token` if it does not exist yet."""
        path = self._namespace_path(token)
        try:
            path.mkdir(exist_ok=True)
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot create namespace: {e}") from e

    def require_namespace(self, token: str) -> Path:
        if not self.namespace_exists(token):
            raise NamespaceNotFound("Invalid token or namespace does not exist")
        return self.root / token

    def list_entries(self, token: str) -> List[str]:
        """Return the sorted names of all files in the namespace."""
        namespace = self.require_namespace(token)
        try:
            return sorted(p.name for p in namespace.iterdir() if p.is_file())
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot list namespace: {e}") from e

    def put_entry(self, token: str, name: str, data: bytes):
        """Store `data` as `name`, replacing any previous entry atomically."""
        path = self._entry_path(token, name)
        try:
            fd, tmp = tempfile.mkstemp(prefix=token + ".", dir=str(self.root / STAGING_DIR))
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp, path)
            finally:
                if os.path.exists(tmp):
                    os.unlink(tmp)
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot write {name!r}: {e}") from e

    def get_entry(self, token: str, name: str) -> bytes:
        path = self._entry_path(token, name)
        try:
            if not path.is_file():
                raise EntryNotFound(f"File not found: {name}")
            return path.read_bytes()
        except FileNotFoundError as e:
            raise EntryNotFound(f"File not found: {name}") from e
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot read {name!r}: {e}") from e

import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Optional

from .errors import IdentityUnknown, PersistenceUnavailable
from .tokens import ALPHABET, USER_TOKEN_LENGTH, mint_token

logger = logging.getLogger(__name__)


class TokenRegistry:
    """Maps a user identity to its current access token.

    Records live in a single SQLite table ``users(id, token)``. Every call
    opens its own connection, so one registry can be shared between the
    bot's event loop and the web server's request threads.
    """

    def __init__(self, db_path: str, token_length: int = USER_TOKEN_LENGTH,
                 alphabet: str = ALPHABET, timeout: float = 5.0):
        self.db_path = db_path
        self.token_length = token_length
        self.alphabet = alphabet
        self.timeout = timeout
        self.init_schema()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=self.timeout)

    def init_schema(self):
        """Create the users table if it does not exist yet."""
        try:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            with closing(self._connect()) as conn, conn:
                conn.execute(
                    "CREATE TABLE IF NOT EXISTS users ("
                    "id INTEGER PRIMARY KEY, "
                    "token TEXT)"
                )
        except (sqlite3.Error, OSError) as e:
            raise PersistenceUnavailable(f"Cannot initialize database {self.db_path}: {e}") from e
        logger.info(f"Token database ready: {self.db_path}")

    def ensure_registered(self, identity: int):
        """Create a record with no token for `identity` unless one exists."""
        try:
            with closing(self._connect()) as conn, conn:
                conn.execute(
                    "INSERT OR IGNORE INTO users (id, token) VALUES (?, NULL)",
                    (identity,)
                )
        except sqlite3.Error as e:
            raise PersistenceUnavailable(f"Cannot register user {identity}: {e}") from e

    def current_token(self, identity: int) -> Optional[str]:
        """Return the stored token, or None for unknown identities and empty records."""
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    "SELECT token FROM users WHERE id = ?", (identity,)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceUnavailable(f"Cannot read token for user {identity}: {e}") from e

        if row is None or not row[0]:
            return None
        return row[0]

    def rotate_token(self, identity: int) -> str:
        """Mint a new token for `identity` and store it over the previous one."""
        token = mint_token(self.token_length, self.alphabet)
        try:
            with closing(self._connect()) as conn, conn:
                cursor = conn.execute(
                    "UPDATE users SET token = ? WHERE id = ?", (token, identity)
                )
                updated = cursor.rowcount
        except sqlite3.Error as e:
            raise PersistenceUnavailable(f"Cannot update token for user {identity}: {e}") from e

        if updated == 0:
            raise IdentityUnknown(f"User {identity} is not registered")
        return token

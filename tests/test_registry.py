import os
import sqlite3
import tempfile
import unittest
from contextlib import closing

from cloud_storage_bot.errors import IdentityUnknown, PersistenceUnavailable
from cloud_storage_bot.registry import TokenRegistry
from cloud_storage_bot.tokens import ALPHABET


class TestTokenRegistry(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self._td.name, "db", "cloud_storage.db")
        self.registry = TokenRegistry(self.db_path)

    def tearDown(self) -> None:
        self._td.cleanup()

    def _count(self, identity: int) -> int:
        with closing(sqlite3.connect(self.db_path)) as conn:
            return conn.execute("SELECT COUNT(*) FROM users WHERE id = ?", (identity,)).fetchone()[0]

    def test_unknown_identity_has_no_token(self) -> None:
        self.assertIsNone(self.registry.current_token(42))

    def test_registered_identity_has_no_token_until_rotation(self) -> None:
        self.registry.ensure_registered(42)
        self.assertIsNone(self.registry.current_token(42))
        self.assertEqual(self._count(42), 1)

    def test_ensure_registered_is_idempotent_and_keeps_token(self) -> None:
        self.registry.ensure_registered(42)
        token = self.registry.rotate_token(42)
        self.registry.ensure_registered(42)

        self.assertEqual(self._count(42), 1)
        self.assertEqual(self.registry.current_token(42), token)

    def test_rotate_returns_stored_token(self) -> None:
        self.registry.ensure_registered(7)
        token = self.registry.rotate_token(7)

        self.assertEqual(self.registry.current_token(7), token)
        self.assertEqual(len(token), 18)
        self.assertTrue(all(ch in ALPHABET for ch in token))

    def test_rotate_replaces_previous_token(self) -> None:
        self.registry.ensure_registered(7)
        first = self.registry.rotate_token(7)
        second = self.registry.rotate_token(7)

        self.assertNotEqual(first, second)
        self.assertEqual(self.registry.current_token(7), second)

    def test_rotate_unregistered_identity(self) -> None:
        with self.assertRaises(IdentityUnknown):
            self.registry.rotate_token(99)
        self.assertEqual(self._count(99), 0)

    def test_token_length_is_configurable(self) -> None:
        registry = TokenRegistry(self.db_path, token_length=30)
        registry.ensure_registered(1)
        self.assertEqual(len(registry.rotate_token(1)), 30)

    def test_records_survive_new_registry(self) -> None:
        self.registry.ensure_registered(5)
        token = self.registry.rotate_token(5)
        self.assertEqual(TokenRegistry(self.db_path).current_token(5), token)

    def test_unusable_database_is_persistence_error(self) -> None:
        # A directory cannot be opened as a database file.
        bad_path = os.path.join(self._td.name, "is_a_dir")
        os.makedirs(bad_path)
        with self.assertRaises(PersistenceUnavailable):
            TokenRegistry(bad_path)

    def test_corrupt_table_is_persistence_error(self) -> None:
        with closing(sqlite3.connect(self.db_path)) as conn, conn:
            conn.execute("DROP TABLE users")
        with self.assertRaises(PersistenceUnavailable):
            self.registry.current_token(1)
        with self.assertRaises(PersistenceUnavailable):
            self.registry.ensure_registered(1)


if __name__ == "__main__":
    unittest.main()

import threading
import unittest

from db_fixtures import LOGIN_SCHEMA, STATS_SCHEMA, TempDatabases

from domain.models import PLAYER_ID_FLOOR, SetPlayerIdStatus
from infrastructure.db.account_repository import SqlAccountRepository
from infrastructure.db.stats_identity_probe import StatsIdentityProbe
from infrastructure.db.store_sqlite import SqliteStore
from infrastructure.hashing import Md5PasswordHasher


class SqlAccountRepositoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.dbs = TempDatabases()
        self.addCleanup(self.dbs.cleanup)
        login_path = self.dbs.create("login.db", LOGIN_SCHEMA)
        stats_path = self.dbs.create("stats.db", STATS_SCHEMA)
        self.hasher = Md5PasswordHasher()
        self.lock = threading.Lock()
        self.repo = self._make_repo(login_path, stats_path)

    def _make_repo(self, login_path, stats_path):
        return SqlAccountRepository(
            SqliteStore(login_path),
            StatsIdentityProbe(SqliteStore(stats_path)),
            self.hasher,
            creation_lock=self.lock,
        )

    def test_unknown_user_is_absent(self):
        self.assertFalse(self.repo.user_exists("ghost"))
        self.assertIsNone(self.repo.get_user("ghost"))
        self.assertEqual(self.repo.get_player_id("ghost"), 0)
        self.assertFalse(self.repo.player_id_exists(PLAYER_ID_FLOOR))

    def test_first_accounts_start_at_the_floor(self):
        self.assertEqual(self.repo.create_user("alice", "pw", "A@x.com", "US"), 500000000)
        self.assertEqual(self.repo.create_user("bob", "pw", "b@x.com", "DE"), 500000001)
        self.assertEqual(self.repo.count_users(), 2)

    def test_created_account_is_stored_hashed_and_lowercased(self):
        self.repo.create_user("alice", "secret", "Alice@Example.COM", "US")

        account = self.repo.get_user("alice")
        self.assertIsNotNone(account)
        self.assertEqual(account.player_id, PLAYER_ID_FLOOR)
        self.assertEqual(account.email, "alice@example.com")
        self.assertEqual(account.country, "US")
        self.assertEqual(account.password_hash, self.hasher.hash("secret"))
        self.assertNotEqual(account.password_hash, "secret")

    def test_identity_below_floor_is_clamped(self):
        self.dbs.run(
            "login.db",
            "INSERT INTO web_users (pid, username, password, email) VALUES (?, ?, ?, ?)",
            (42, "legacy", "x", "l@x.com"),
        )
        self.assertEqual(self.repo.create_user("new", "pw", "n@x.com", "US"), PLAYER_ID_FLOOR)

    def test_identity_continues_after_highest_pid(self):
        self.dbs.run(
            "login.db",
            "INSERT INTO web_users (pid, username, password, email) VALUES (?, ?, ?, ?)",
            (600000000, "veteran", "x", "v@x.com"),
        )
        self.assertEqual(self.repo.create_user("new", "pw", "n@x.com", "US"), 600000001)

    def test_stats_identity_is_reused(self):
        self.dbs.run("stats.db", "INSERT INTO player (pid, name) VALUES (?, ?)", (123456, " Alice"))

        pid = self.repo.create_user("alice", "pw", "a@x.com", "US")

        self.assertEqual(pid, 123456)
        self.assertEqual(self.repo.get_player_id("alice"), 123456)

    def test_stats_name_without_leading_space_is_not_matched(self):
        self.dbs.run("stats.db", "INSERT INTO player (pid, name) VALUES (?, ?)", (123456, "alice"))
        self.assertEqual(self.repo.create_user("alice", "pw", "a@x.com", "US"), PLAYER_ID_FLOOR)

    def test_unreachable_stats_source_falls_back_to_generation(self):
        repo = self._make_repo(self.dbs.path("login.db"), self.dbs.path("missing-stats.db"))
        self.assertEqual(repo.create_user("alice", "pw", "a@x.com", "US"), PLAYER_ID_FLOOR)

    def test_unparsable_stats_pid_falls_back_to_generation(self):
        loose_stats = self.dbs.create("loose-stats.db", "CREATE TABLE player (pid TEXT, name TEXT NOT NULL);")
        self.dbs.run("loose-stats.db", "INSERT INTO player (pid, name) VALUES (?, ?)", ("abc", " alice"))
        repo = self._make_repo(self.dbs.path("login.db"), loose_stats)

        self.assertEqual(repo.create_user("alice", "pw", "a@x.com", "US"), PLAYER_ID_FLOOR)

    def test_duplicate_nick_returns_zero(self):
        self.repo.create_user("alice", "pw", "a@x.com", "US")
        self.assertEqual(self.repo.create_user("alice", "other", "b@x.com", "US"), 0)
        self.assertEqual(self.repo.count_users(), 1)

    def test_concurrent_creations_get_distinct_identities(self):
        results = []
        results_lock = threading.Lock()

        def create(i):
            # Each worker gets its own repository, as each request would.
            repo = self._make_repo(self.dbs.path("login.db"), self.dbs.path("stats.db"))
            pid = repo.create_user(f"player{i}", "pw", f"p{i}@x.com", "US")
            with results_lock:
                results.append(pid)

        threads = [threading.Thread(target=create, args=(i,)) for i in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(results), 12)
        self.assertEqual(len(set(results)), 12)
        self.assertTrue(all(pid >= PLAYER_ID_FLOOR for pid in results))
        self.assertEqual(self.repo.count_users(), 12)

    def test_get_users_by_credential_ignores_email_case(self):
        self.repo.create_user("alice", "pw", "shared@x.com", "US")
        self.repo.create_user("alice2", "pw", "Shared@X.com", "US")
        self.repo.create_user("bob", "other", "shared@x.com", "US")

        matches = self.repo.get_users_by_credential("SHARED@x.com", "pw")

        self.assertEqual(sorted(a.username for a in matches), ["alice", "alice2"])
        self.assertEqual(self.repo.get_users_by_credential("shared@x.com", "wrong"), [])

    def test_update_country(self):
        self.repo.create_user("alice", "pw", "a@x.com", "US")
        self.assertEqual(self.repo.update_country("alice", "FR"), 1)
        self.assertEqual(self.repo.get_user("alice").country, "FR")
        self.assertEqual(self.repo.update_country("ghost", "FR"), 0)

    def test_relink_user_replaces_identity_and_credentials(self):
        pid = self.repo.create_user("alice", "pw", "a@x.com", "US")

        rows = self.repo.relink_user(pid, 777, "alicia", "newpw", "NEW@x.com")

        self.assertEqual(rows, 1)
        self.assertFalse(self.repo.user_exists("alice"))
        account = self.repo.get_user("alicia")
        self.assertEqual(account.player_id, 777)
        self.assertEqual(account.email, "new@x.com")
        self.assertEqual(account.password_hash, self.hasher.hash("newpw"))

    def test_delete_by_nick_and_by_player_id(self):
        pid = self.repo.create_user("alice", "pw", "a@x.com", "US")
        self.repo.create_user("bob", "pw", "b@x.com", "US")

        self.assertEqual(self.repo.delete_user("bob"), 1)
        self.assertEqual(self.repo.delete_user("bob"), 0)
        self.assertEqual(self.repo.delete_player(pid), 1)
        self.assertEqual(self.repo.count_users(), 0)

    def test_set_player_id_not_found(self):
        self.assertEqual(self.repo.set_player_id("ghost", 1), SetPlayerIdStatus.NOT_FOUND)

    def test_set_player_id_conflict(self):
        self.repo.create_user("alice", "pw", "a@x.com", "US")
        bob = self.repo.create_user("bob", "pw", "b@x.com", "US")

        self.assertEqual(self.repo.set_player_id("alice", bob), SetPlayerIdStatus.CONFLICT)
        self.assertEqual(self.repo.get_player_id("alice"), PLAYER_ID_FLOOR)

    def test_set_player_id_updates_one_row(self):
        self.repo.create_user("alice", "pw", "a@x.com", "US")

        self.assertEqual(self.repo.set_player_id("alice", 900000000), 1)
        self.assertEqual(self.repo.get_player_id("alice"), 900000000)
        self.assertTrue(self.repo.player_id_exists(900000000))

    def test_set_player_id_to_own_id_is_not_a_conflict(self):
        pid = self.repo.create_user("alice", "pw", "a@x.com", "US")
        self.assertEqual(self.repo.set_player_id("alice", pid), 1)

    def test_set_player_id_finds_account_relinked_to_zero(self):
        pid = self.repo.create_user("alice", "pw", "a@x.com", "US")
        self.repo.relink_user(pid, 0, "alice", "pw", "a@x.com")

        self.assertEqual(self.repo.set_player_id("alice", 700000000), 1)
        self.assertEqual(self.repo.get_player_id("alice"), 700000000)


if __name__ == "__main__":
    unittest.main()

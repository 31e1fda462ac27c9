"""Unit tests for app.services.session: keyed session table and its generation guard."""

import threading
import unittest
from datetime import UTC, datetime

from app.schemas.auth import Role, Session, User
from app.services.session import SessionManager, new_session_id


def _user(username: str = "admin", role: Role = Role.ADMIN) -> User:
    return User(
        id=f"id-{username}",
        username=username,
        display_name=username.title(),
        email=f"{username}@example.com",
        role=role,
    )


class TestSessionLifecycle(unittest.TestCase):

    def test_initially_anonymous(self) -> None:
        self.assertIsNone(SessionManager().current("s1"))

    def test_establish_and_clear(self) -> None:
        manager = SessionManager()
        session = manager.establish("s1", _user())
        self.assertEqual(session.identity.username, "admin")
        self.assertEqual(manager.current("s1"), _user())
        self.assertTrue(manager.clear("s1"))
        self.assertIsNone(manager.current("s1"))

    def test_clear_is_idempotent(self) -> None:
        manager = SessionManager()
        self.assertFalse(manager.clear("s1"))
        self.assertFalse(manager.clear("s1"))
        self.assertIsNone(manager.current("s1"))

    def test_establish_replaces_prior_session(self) -> None:
        manager = SessionManager()
        manager.establish("s1", _user("admin"))
        manager.establish("s1", _user("rh", Role.HR))
        self.assertEqual(manager.current("s1").username, "rh")
        self.assertEqual(manager.active_count(), 1)

    def test_sessions_are_keyed(self) -> None:
        manager = SessionManager()
        manager.establish("s1", _user("admin"))
        manager.establish("s2", _user("rh", Role.HR))
        manager.clear("s1")
        self.assertIsNone(manager.current("s1"))
        self.assertEqual(manager.current("s2").username, "rh")


class TestGenerationGuard(unittest.TestCase):
    """A clear() between reading the generation and establish() wins."""

    def test_establish_refused_after_clear(self) -> None:
        manager = SessionManager()
        generation = manager.generation("s1")
        manager.clear("s1")
        self.assertIsNone(manager.establish("s1", _user(), expected_generation=generation))
        self.assertIsNone(manager.current("s1"))

    def test_establish_allowed_with_current_generation(self) -> None:
        manager = SessionManager()
        manager.clear("s1")
        generation = manager.generation("s1")
        self.assertIsNotNone(manager.establish("s1", _user(), expected_generation=generation))

    def test_clear_on_other_session_does_not_interfere(self) -> None:
        manager = SessionManager()
        generation = manager.generation("s1")
        manager.clear("s2")
        self.assertIsNotNone(manager.establish("s1", _user(), expected_generation=generation))


class TestRestore(unittest.TestCase):

    def test_restore_runs_once(self) -> None:
        manager = SessionManager()
        snapshot = Session(session_id="s1", identity=_user(), established_at=datetime.now(UTC))
        self.assertEqual(manager.restore([snapshot]), 1)
        self.assertEqual(manager.current("s1"), _user())
        self.assertEqual(manager.restore([snapshot]), 0)


class TestConcurrentAccess(unittest.TestCase):

    def test_parallel_establish_on_distinct_sessions(self) -> None:
        manager = SessionManager()
        ids = [new_session_id() for _ in range(50)]
        threads = [threading.Thread(target=manager.establish, args=(sid, _user())) for sid in ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(manager.active_count(), 50)

    def test_session_ids_are_unique(self) -> None:
        self.assertEqual(len({new_session_id() for _ in range(100)}), 100)


if __name__ == "__main__":
    unittest.main()

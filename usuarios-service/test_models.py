"""
Unit tests for the in-memory user store and its shared validation.
"""
import threading
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from errors import NotFound, ValidationError
from models import User, UserStore, ValidationResult, validate_user


@pytest.fixture
def store():
    return UserStore()


class TestValidateUser:

    def test_ok(self, store):
        assert validate_user(store.list_users(), "Ana", "ana@x.com") is ValidationResult.OK

    @pytest.mark.parametrize("nome,email", [(None, "a@x.com"), ("Ana", None), ("", "a@x.com"), ("Ana", "")])
    def test_missing_fields(self, store, nome, email):
        assert validate_user(store.list_users(), nome, email) is ValidationResult.MISSING_FIELDS

    def test_email_in_use(self, store):
        assert validate_user(store.list_users(), "X", "maria@email.com") is ValidationResult.EMAIL_IN_USE

    def test_own_email_is_ignored(self, store):
        result = validate_user(store.list_users(), "X", "maria@email.com", ignore_id=2)
        assert result is ValidationResult.OK


class TestUserStore:

    def test_seeded(self, store):
        assert len(store) == 3
        assert store.next_id == 4
        assert store.get_user(3) == User(id=3, nome="Pedro Costa", email="pedro@email.com")

    def test_list_returns_snapshot(self, store):
        snapshot = store.list_users()
        store.create_user("Ana", "ana@x.com")
        assert len(snapshot) == 3
        assert len(store) == 4

    def test_get_unknown(self, store):
        with pytest.raises(NotFound):
            store.get_user(42)

    def test_create_assigns_increasing_ids(self, store):
        ids = [store.create_user(f"U{i}", f"u{i}@x.com").id for i in range(3)]
        assert ids == [4, 5, 6]
        assert store.next_id == 7

    def test_failed_create_does_not_consume_id(self, store):
        with pytest.raises(ValidationError):
            store.create_user("Bob", "joao@email.com")
        assert store.create_user("Bob", "bob@x.com").id == 4

    def test_update_replaces_in_place(self, store):
        updated = store.update_user(1, "J", "j@x.com")
        assert updated == User(id=1, nome="J", email="j@x.com")
        assert store.list_users()[0] == updated

    def test_update_checks_existence_first(self, store):
        with pytest.raises(NotFound):
            store.update_user(99, None, None)

    def test_update_duplicate_email(self, store):
        with pytest.raises(ValidationError) as exc_info:
            store.update_user(1, "J", "maria@email.com")
        assert exc_info.value.message == "Email já está em uso"
        assert exc_info.value.status_code == 400

    def test_delete_preserves_order(self, store):
        removed = store.delete_user(1)
        assert removed.id == 1
        assert [u.id for u in store.list_users()] == [2, 3]
        with pytest.raises(NotFound):
            store.delete_user(1)

    def test_ids_never_reused(self, store):
        user = store.create_user("Ana", "ana@x.com")
        store.delete_user(user.id)
        assert store.create_user("Ana", "ana@x.com").id == user.id + 1

    def test_reset_restores_seed(self, store):
        store.create_user("Ana", "ana@x.com")
        store.delete_user(1)
        store.reset()
        assert [u.id for u in store.list_users()] == [1, 2, 3]
        assert store.next_id == 4

    def test_concurrent_creates_keep_emails_unique(self, store):
        def worker(n):
            for i in range(50):
                try:
                    store.create_user("T", f"t{i}@x.com")
                except ValidationError:
                    pass

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        emails = [u.email for u in store.list_users()]
        assert len(emails) == len(set(emails)) == 53
        ids = [u.id for u in store.list_users()]
        assert ids == sorted(ids)

"""Integration tests for the repository against an in-memory sqlite3 store."""

import sqlite3

import pytest

from coreorm import ExecResult, NoResultsError, QueryError, UnsetFieldError, ValidationError

from fixture_models import Post, Role, User


@pytest.fixture
def user(repo):
    return repo.insert(User(name="Test User"))


@pytest.fixture
def post(repo, user):
    return repo.insert(Post(author=user, the_content="Some content", tags=["foo", "bar"]))


class TestInsert:

    def test_populates_defaults(self, user):
        assert isinstance(user.id, int)
        assert user.created_at is not None
        assert user.updated_at is None
        assert user.role is Role.USER
        assert user.active

    def test_snapshot_is_refreshed(self, user):
        assert user.changes() == {}

    def test_single_round_trip(self, repo, database):
        repo.insert(User(name="Foo"))
        assert len(database.statements) == 1
        assert database.statements[0][0].startswith("INSERT INTO users (role, name, updated_at, referrer_id) VALUES")

    def test_batch_is_one_statement_with_distinct_keys(self, repo, database):
        users = repo.insert([User(name="Foo"), User(name="Bar")])
        assert isinstance(users, list)
        assert len(database.statements) == 1
        assert users[0].id != users[1].id
        assert [u.name for u in users] == ["Foo", "Bar"]
        assert all(u.created_at is not None for u in users)

    def test_empty_batch(self, repo, database):
        assert repo.insert([]) == []
        assert database.statements == []

    def test_with_references(self, post, user):
        assert isinstance(post, Post)
        assert post.author_id == user.id
        assert post.tags == ["foo", "bar"]
        assert post.editor_id is None

    def test_explicit_value_overrides_application_default(self, repo):
        admin = repo.insert(User(name="Admin", role=Role.ADMIN))
        assert repo.query_one(User.where(id=admin.id)).role is Role.ADMIN

    def test_caller_value_overrides_database_default(self, repo):
        inactive = repo.insert(User(name="Inactive", active=False))
        assert not inactive.active
        assert inactive.created_at is not None
        assert not repo.query_one(User.where(id=inactive.id)).active

    def test_batch_with_mixed_database_defaults(self, repo, database):
        users = repo.insert([User(name="Foo"), User(name="Bar", active=False), User(name="Baz")])
        assert len(database.statements) == 2
        assert len({u.id for u in users}) == 3
        assert [u.name for u in users] == ["Foo", "Bar", "Baz"]
        stored = {u.name: u.active for u in repo.query_all(User.all())}
        assert stored["Foo"] and stored["Baz"]
        assert not stored["Bar"]

    def test_nil_database_default_is_rejected(self, repo, database):
        with pytest.raises(ValidationError):
            repo.insert(User(name="Foo", active=None))
        assert database.statements == []

    def test_validation_failure_sends_nothing(self, repo, database):
        with pytest.raises(ValidationError) as exc:
            repo.insert(Post(the_content="orphan"))
        assert "author_id is required" in exc.value.errors
        assert database.statements == []

    def test_mixed_batch_is_rejected(self, repo, user):
        with pytest.raises(TypeError):
            repo.insert([User(name="Foo"), Post(author=user, the_content="x")])


class TestQuery:

    def test_round_trip(self, repo, user):
        fetched = repo.query_one(User.where(id=user.id))
        assert fetched.to_dict() == user.to_dict()
        assert fetched == user

    def test_raw_sql(self, repo, user):
        first = next(repo.query(User, "SELECT * FROM users ORDER BY id LIMIT 1"))
        assert first.id == user.id

    def test_is_lazy_and_single_pass(self, repo, database, user):
        before = len(database.statements)
        records = repo.query(User.all())
        assert len(database.statements) == before
        assert [r.id for r in records] == [user.id]
        assert len(database.statements) == before + 1
        assert list(records) == []

    def test_aggregate_over_to_many_join(self, repo, user, post):
        repo.insert(Post(author=user, the_content="More"))
        query = (
            User.select("*", "COUNT(posts.id) AS posts_count")
            .join("posts")
            .group_by("users.id")
            .order_by("users.id", "desc")
            .limit(1)
        )
        found = repo.query_one(query)
        assert found.id == user.id
        assert found.name == "Test User"
        assert found.role is Role.USER
        assert found.extras["posts_count"] == 2

    def test_to_one_join_with_projection(self, repo, user, post):
        found = repo.query_one(Post.where(author=user).join("author", select=["id", "name", "active", "role"]))
        assert found.tags == ["foo", "bar"]
        author = found.author
        assert author == user
        assert author.name == "Test User"
        assert author.role is Role.USER
        assert author.active
        assert author.get("created_at") is None
        with pytest.raises(UnsetFieldError):
            author.updated_at

    def test_join_selecting_only_null_columns(self, repo, user, post):
        found = repo.query_one(Post.where(id=post.id).join("author", select=["updated_at"]))
        assert found.author is not None
        assert found.author == user
        assert found.author.updated_at is None

    def test_nilable_join_without_match(self, repo, post):
        found = repo.query_one(Post.where(id=post.id).join("editor"))
        assert found.editor is None

    def test_partial_projection(self, repo, user):
        found = repo.query_one(User.select("id", "name").where(id=user.id))
        assert found.name == "Test User"
        with pytest.raises(UnsetFieldError):
            found.role
        with pytest.raises(UnsetFieldError):
            found.created_at

    def test_to_many_through_explicit_query(self, repo, user, post):
        posts = repo.query_all(Post.where(author_id=user.id))
        assert [p.id for p in posts] == [post.id]

    def test_query_all(self, repo, user):
        users = repo.query_all(User, "SELECT * FROM users WHERE id = ?", user.id)
        assert [u.id for u in users] == [user.id]
        assert repo.query_all(User.all()) == [user]


class TestQueryOne:

    def test_zero_rows(self, repo, user):
        assert repo.query_one_or_none(User, "SELECT * FROM users WHERE id = ?", -1) is None
        assert repo.query_one_or_none(User.where(id=-1)) is None
        with pytest.raises(NoResultsError):
            repo.query_one(User, "SELECT * FROM users WHERE id = ?", -1)
        with pytest.raises(NoResultsError):
            repo.query_one(User.where(id=-1))

    def test_last(self, repo):
        repo.insert([User(name="Foo"), User(name="Bar")])
        assert repo.query_one(User.last()).name == "Bar"
        assert repo.query_one_or_none(User.last()).name == "Bar"

    def test_extra_rows_are_ignored(self, repo):
        repo.insert([User(name="Foo"), User(name="Bar")])
        assert repo.query_one(User.order_by("id")).name == "Foo"


class TestUpdate:

    def test_ignores_empty_changes(self, repo, database, user):
        loaded = repo.query_one(User.last())
        before = len(database.statements)
        assert repo.update(loaded) is None
        assert len(database.statements) == before

    def test_sends_only_changed_fields(self, repo, database, user):
        loaded = repo.query_one(User.last())
        loaded.name = "Updated User"
        result = repo.update(loaded)
        assert result.rowcount == 1
        assert database.statements[-1] == ("UPDATE users SET name = ? WHERE users.id = ?", ["Updated User", user.id])
        assert repo.query_one(User.last()).name == "Updated User"

    def test_repeated_update_is_a_no_op(self, repo, database, user):
        user.name = "Changed"
        assert repo.update(user)
        count = len(database.statements)
        assert repo.update(user) is None
        assert repo.update(user) is None
        assert len(database.statements) == count

    def test_reference_change(self, repo, user, post):
        other = repo.insert(User(name="Editor"))
        post.editor = other
        repo.update(post)
        assert repo.query_one(Post.where(id=post.id)).editor_id == other.id

    def test_batch_of_records(self, repo, database):
        users = repo.insert([User(name="Foo"), User(name="Bar")])
        for u in users:
            u.role = Role.ADMIN
        result = repo.update(users)
        assert result.rowcount == 2
        assert {u.role for u in repo.query_all(User.all())} == {Role.ADMIN}

    def test_invalid_change_is_rejected(self, repo, database, user):
        user.name = None
        before = len(database.statements)
        with pytest.raises(ValidationError):
            repo.update(user)
        assert len(database.statements) == before

    def test_with_query(self, repo, user):
        result = repo.update(User.where(id=user.id).set(name="Updated Again User"))
        assert result.rowcount == 1
        assert repo.query_one(User.last()).name == "Updated Again User"

    def test_query_without_set_clauses(self, repo, database, user):
        before = len(database.statements)
        with pytest.raises(QueryError):
            repo.update(User.where(id=user.id))
        assert len(database.statements) == before


class TestDelete:

    def test_single_record(self, repo, post):
        post_id = post.id
        assert repo.delete(post)
        assert repo.query_all(Post.where(id=post_id)) == []

    def test_multiple_records(self, repo):
        repo.insert([User(name="Foo"), User(name="Bar"), User(name="Baz")])
        users = repo.query_all(User.order_by("id", "desc").limit(2))
        ids = [u.id for u in users]
        result = repo.delete(users)
        assert result.rowcount == 2
        assert repo.query_all(User.where(id=ids)) == []
        assert len(repo.query_all(User.all())) == 1

    def test_query(self, repo):
        repo.insert([User(name="Foo"), User(name="Bar")])
        ids = [u.id for u in repo.query(User.order_by("created_at", "desc").limit(2))]
        assert repo.delete(User.where(id=ids))
        assert repo.query_all(User.where(id=ids)) == []

    def test_query_without_conditions_is_rejected(self, repo, database, user):
        before = len(database.statements)
        with pytest.raises(QueryError):
            repo.delete(User.all())
        assert len(database.statements) == before
        assert repo.query_all(User.all()) == [user]

    def test_empty_batch(self, repo, database):
        assert not repo.delete([])
        assert database.statements == []


class TestRaw:

    def test_exec(self, repo, user):
        assert isinstance(repo.exec("SELECT 'Hello world'"), ExecResult)
        assert isinstance(repo.exec(User.all()), ExecResult)
        assert repo.exec("UPDATE users SET name = ? WHERE id = ?", "Raw", user.id).rowcount == 1

    def test_scalar(self, repo, user):
        assert repo.scalar("SELECT 1") == 1
        assert repo.scalar(User.last().select("id"), as_type=int) == user.id
        assert repo.scalar("SELECT COUNT(*) FROM users") == 1

    def test_scalar_without_rows(self, repo):
        with pytest.raises(NoResultsError):
            repo.scalar("SELECT id FROM users WHERE id = ?", -1)

    def test_driver_errors_pass_through(self, repo):
        with pytest.raises(sqlite3.OperationalError):
            repo.query_all(User, "INVALID QUERY")
        with pytest.raises(sqlite3.OperationalError):
            repo.exec("INSERT INTO missing_table VALUES (1)")

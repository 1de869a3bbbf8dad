"""Shared pytest fixtures for dbmodel tests."""

import pytest

from dbmodel.database.models import RawCatalog, RawColumn

from .fixtures.catalogs import fk, pk, unique


@pytest.fixture
def blog_catalog():
    """user/post schema with a one-to-many author relation."""
    return RawCatalog(
        schema="public",
        tables=("post", "user"),
        columns=(
            RawColumn("post", "id", "integer", False, "nextval('post_id_seq'::regclass)", 1),
            RawColumn("post", "title", "text", False, None, 2),
            RawColumn("post", "published", "boolean", True, "false", 3),
            RawColumn("post", "author_id", "integer", False, None, 4),
            RawColumn("user", "id", "integer", False, "nextval('user_id_seq'::regclass)", 1),
            RawColumn("user", "email", "text", False, None, 2),
            RawColumn("user", "name", "text", True, None, 3),
        ),
        key_constraints=(pk("post", "id"), pk("user", "id"), unique("user", "email")),
        foreign_keys=(fk("post", ["author_id"], "user", on_delete="CASCADE"),),
    )


@pytest.fixture
def blog_catalog_with_comments(blog_catalog):
    """The blog schema plus a comment table referencing post."""
    return RawCatalog(
        schema="public",
        tables=("comment",) + blog_catalog.tables,
        columns=(
            RawColumn("comment", "id", "integer", False, None, 1),
            RawColumn("comment", "body", "text", False, None, 2),
            RawColumn("comment", "post_id", "integer", False, None, 3),
        ) + blog_catalog.columns,
        key_constraints=(pk("comment", "id"),) + blog_catalog.key_constraints,
        foreign_keys=(fk("comment", ["post_id"], "post"),) + blog_catalog.foreign_keys,
    )


@pytest.fixture
def tagging_catalog():
    """user/tag schema joined through a pure user_tag junction table."""
    return RawCatalog(
        schema="public",
        tables=("tag", "user", "user_tag"),
        columns=(
            RawColumn("tag", "id", "integer", False, None, 1),
            RawColumn("tag", "label", "text", False, None, 2),
            RawColumn("user", "id", "integer", False, None, 1),
            RawColumn("user_tag", "user_id", "integer", False, None, 1),
            RawColumn("user_tag", "tag_id", "integer", False, None, 2),
        ),
        key_constraints=(pk("tag", "id"), pk("user", "id"), pk("user_tag", "user_id", "tag_id")),
        foreign_keys=(
            fk("user_tag", ["user_id"], "user"),
            fk("user_tag", ["tag_id"], "tag"),
        ),
    )


@pytest.fixture
def employee_catalog():
    """Single table with a nullable foreign key to itself."""
    return RawCatalog(
        schema="public",
        tables=("employee",),
        columns=(
            RawColumn("employee", "id", "integer", False, None, 1),
            RawColumn("employee", "name", "text", False, None, 2),
            RawColumn("employee", "manager_id", "integer", True, None, 3),
        ),
        key_constraints=(pk("employee", "id"),),
        foreign_keys=(fk("employee", ["manager_id"], "employee"),),
    )


@pytest.fixture
def messaging_catalog():
    """Two foreign keys from message to the same user table."""
    return RawCatalog(
        schema="public",
        tables=("message", "user"),
        columns=(
            RawColumn("message", "id", "integer", False, None, 1),
            RawColumn("message", "sender_id", "integer", False, None, 2),
            RawColumn("message", "recipient_id", "integer", False, None, 3),
            RawColumn("user", "id", "integer", False, None, 1),
        ),
        key_constraints=(pk("message", "id"), pk("user", "id")),
        foreign_keys=(
            fk("message", ["sender_id"], "user"),
            fk("message", ["recipient_id"], "user"),
        ),
    )


@pytest.fixture
def profile_catalog():
    """user/profile schema where the foreign key column is unique (one-to-one)."""
    return RawCatalog(
        schema="public",
        tables=("profile", "user"),
        columns=(
            RawColumn("profile", "id", "integer", False, None, 1),
            RawColumn("profile", "user_id", "integer", False, None, 2),
            RawColumn("profile", "bio", "text", True, None, 3),
            RawColumn("user", "id", "integer", False, None, 1),
        ),
        key_constraints=(pk("profile", "id"), unique("profile", "user_id"), pk("user", "id")),
        foreign_keys=(fk("profile", ["user_id"], "user"),),
    )


@pytest.fixture
def blog_datamodel_text():
    """Rendering of the normalized blog schema."""
    return '''type Post @db(name: "post") {
  id: Int! @id
  title: String!
  published: Boolean @default(value: false)
  author: User! @db(name: "author_id") @relation(name: "PostToUser", link: INLINE, onDelete: CASCADE)
}

type User @db(name: "user") {
  id: Int! @id
  email: String! @unique
  name: String
  posts: [Post] @relation(name: "PostToUser")
}
'''


@pytest.fixture
def renamed_blog_text():
    """Hand-edited datamodel for the blog schema with custom names and order."""
    return '''type Author @db(name: "user") {
  id: Int! @id
  mail: String! @unique @db(name: "email")
  name: String
  articles: [Article] @relation(name: "Writes")
}

type Article @db(name: "post") {
  id: Int! @id
  headline: String! @db(name: "title")
  published: Boolean @default(value: false)
  writer: Author! @db(name: "author_id") @relation(name: "Writes", link: INLINE, onDelete: CASCADE)
}
'''


@pytest.fixture
def live_duckdb_connection():
    """In-memory DuckDB database with the user/post and user/tag schemas."""
    duckdb = pytest.importorskip("duckdb")

    conn = duckdb.connect(":memory:")
    conn.execute('CREATE TABLE "user" (id INTEGER PRIMARY KEY, email VARCHAR NOT NULL UNIQUE, name VARCHAR)')
    conn.execute("CREATE TABLE tag (id INTEGER PRIMARY KEY, label VARCHAR NOT NULL)")
    conn.execute(
        "CREATE TABLE post ("
        "id INTEGER PRIMARY KEY, title VARCHAR NOT NULL, published BOOLEAN DEFAULT false, "
        'author_id INTEGER NOT NULL REFERENCES "user"(id))'
    )
    conn.execute(
        "CREATE TABLE user_tag ("
        'user_id INTEGER NOT NULL REFERENCES "user"(id), '
        "tag_id INTEGER NOT NULL REFERENCES tag(id), "
        "PRIMARY KEY (user_id, tag_id))"
    )
    yield conn
    conn.close()

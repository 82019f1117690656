"""
Shared test fixtures and helpers for the Tessera test suite.
"""

import datetime
from types import SimpleNamespace

import pytest

from tessera.db import configure_database, set_database
from tessera.models import (
    BooleanField,
    CharField,
    DateTimeField,
    FloatField,
    IntegerField,
    Model,
    ModelRegistry,
    SchemaRegistry,
    TextField,
    relation,
)


# ============================================================================
# Registry isolation
# ============================================================================


@pytest.fixture(autouse=True)
def reset_registries():
    """Restore ModelRegistry, SchemaRegistry and the default database between tests."""
    old_models = ModelRegistry._models.copy()
    old_schemas = SchemaRegistry._schemas.copy()
    yield
    ModelRegistry._models = old_models
    SchemaRegistry._schemas = old_schemas
    set_database(None)


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def db():
    """Connected in-memory SQLite database registered as the default."""
    database = configure_database("sqlite:///:memory:")
    database.connect()
    yield database
    database.disconnect()


# ============================================================================
# Blog record set
# ============================================================================


def define_blog():
    """Declare the blog record types and the post_tag pivot schema."""

    class Country(Model):
        name = CharField(max_length=100)

        @relation
        def users(self):
            return self.has_many("User")

        @relation
        def posts(self):
            return self.has_many_through("Post", "User")

    class User(Model):
        name = CharField(max_length=150)
        email = CharField(max_length=255, null=True)
        country_id = IntegerField(null=True)

        @relation
        def country(self):
            return self.belongs_to("Country")

        @relation
        def posts(self):
            return self.has_many("Post")

    class Post(Model):
        title = CharField(max_length=200)
        body = TextField(null=True)
        views = IntegerField(default=0)
        rating = FloatField(null=True)
        published = BooleanField(default=False)
        user_id = IntegerField(null=True)
        created_at = DateTimeField(null=True)

        @relation
        def user(self):
            return self.belongs_to("User")

        @relation
        def tags(self):
            return self.belongs_to_many("Tag")

        @relation
        def country(self):
            return self.has_one_through("Country", "User")

    class Tag(Model):
        name = CharField(max_length=50)

        @relation
        def posts(self):
            return self.belongs_to_many("Post")

    SchemaRegistry.define(
        "post_tag",
        post_id=IntegerField(),
        tag_id=IntegerField(),
        created_at=DateTimeField(null=True),
    )

    return SimpleNamespace(Country=Country, User=User, Post=Post, Tag=Tag)


@pytest.fixture
def blog():
    """Blog record types without a database."""
    return define_blog()


@pytest.fixture
def blog_db(db, blog):
    """Blog record types with their tables created."""
    SchemaRegistry.create_tables(db)
    return blog


@pytest.fixture
def seeded(db, blog_db):
    """
    Blog tables filled with a small fixed data set.

    countries: 1 France, 2 Japan
    users:     1 alice (France), 2 bob (France), 3 carol (Japan)
    posts:     1 Hello (alice), 2 Second (alice), 3 Bob's post (bob), 4 Konnichiwa (carol)
    post_tag:  Hello -> python, sql; Konnichiwa -> python
    """
    m = blog_db
    m.Country.create(name="France")
    m.Country.create(name="Japan")

    m.User.create(name="alice", email="alice@example.com", country_id=1)
    m.User.create(name="bob", country_id=1)
    m.User.create(name="carol", email="carol@example.com", country_id=2)

    m.Post.create(
        title="Hello",
        views=10,
        rating=4.5,
        published=True,
        user_id=1,
        created_at=datetime.datetime(2024, 1, 1, 10, 0, 0),
    )
    m.Post.create(
        title="Second",
        views=250,
        user_id=1,
        created_at=datetime.datetime(2024, 2, 1, 9, 30, 0),
    )
    m.Post.create(title="Bob's post", views=40, rating=3.0, published=True, user_id=2)
    m.Post.create(
        title="Konnichiwa",
        views=1000,
        rating=5.0,
        published=True,
        user_id=3,
        created_at=datetime.datetime(2024, 3, 15, 18, 45, 0),
    )

    m.Tag.create(name="python")
    m.Tag.create(name="sql")
    m.Tag.create(name="misc")

    db.execute(
        'INSERT INTO "post_tag" ("post_id", "tag_id", "created_at") VALUES (?, ?, ?)',
        [1, 1, "2024-03-01 12:00:00"],
    )
    db.execute('INSERT INTO "post_tag" ("post_id", "tag_id") VALUES (?, ?)', [1, 2])
    db.execute('INSERT INTO "post_tag" ("post_id", "tag_id") VALUES (?, ?)', [4, 1])
    return m

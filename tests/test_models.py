"""
Tests for the record model.

Covers:
- Metaclass (auto-PK, table names, abstract bases, registration)
- Attribute access, fill and snapshot
- Dirty tracking and save (insert / update)
- find, find_or_fail, create, destroy, delete
- refresh / fresh
- Identity, copy and serialization
"""

import datetime
import json
from unittest.mock import MagicMock

import pytest

from tessera.db import set_database
from tessera.faults import (
    AttributeFault,
    FillFault,
    MissingIdentifierFault,
    RecordNotFoundFault,
    SchemaFault,
)
from tessera.models import (
    AutoField,
    CharField,
    Collection,
    DateTimeField,
    Field,
    IntegerField,
    Model,
    ModelRegistry,
    SchemaRegistry,
    TextField,
    relation,
)


# ============================================================================
# Metaclass
# ============================================================================


class TestModelMeta:
    """Test class construction."""

    def test_auto_pk_injected_first(self, blog):
        fields = list(blog.Post._fields)
        assert fields[0] == "id"
        assert isinstance(blog.Post._fields["id"], AutoField)

    def test_fields_are_not_class_attributes(self, blog):
        assert not isinstance(blog.Post.__dict__.get("title"), Field)

    def test_table_name_inflected(self, blog):
        assert blog.Country.table_name() == "countries"
        assert blog.Post.table_name() == "posts"

    def test_explicit_table_name(self):
        class Person(Model):
            table = "people_archive"
            name = CharField()

        assert Person.table_name() == "people_archive"
        assert SchemaRegistry.has("people_archive")

    def test_registered_by_name(self, blog):
        assert ModelRegistry.get("Post") is blog.Post
        assert ModelRegistry.resolve(blog.Tag) is blog.Tag

    def test_schema_registered(self, blog):
        schema = SchemaRegistry.use("posts")
        assert schema is blog.Post.schema()
        assert schema.column_names[:3] == ["id", "title", "body"]

    def test_relations_collected(self, blog):
        assert set(blog.Post._relations) == {"user", "tags", "country"}

    def test_abstract_base_not_registered(self):
        class Timestamped(Model):
            abstract = True
            created_at = DateTimeField(null=True)

        class Note(Timestamped):
            body = TextField()

        assert "Timestamped" not in ModelRegistry.all_models()
        assert Note.table_name() == "notes"
        assert list(Note._fields) == ["id", "created_at", "body"]

    def test_explicit_primary_key_suppresses_auto_pk(self):
        class Code(Model):
            code = IntegerField(primary_key=True)

        assert "id" not in Code._fields
        assert Code.schema().primary_key == "code"

    def test_table_column_is_not_the_table_name(self):
        class Seat(Model):
            table = IntegerField()

        assert Seat.table_name() == "seats"
        assert "table" in Seat._fields
        assert Seat(table=4).table == 4

    def test_column_shadowing_a_method(self):
        with pytest.raises(SchemaFault) as exc_info:
            class Ledger(Model):
                delete = CharField()

        assert "delete" in exc_info.value.message
        assert "Ledger" not in ModelRegistry.all_models()

    def test_relation_shadowing_a_method(self):
        with pytest.raises(SchemaFault):
            class Invoice(Model):
                @relation
                def save(self):
                    return self.belongs_to("Invoice")


# ============================================================================
# Attributes
# ============================================================================


class TestAttributes:
    """Test attribute access and bulk assignment."""

    def test_constructor_fills(self, blog):
        post = blog.Post({"title": "Hi"}, views=3)
        assert post.title == "Hi"
        assert post.views == 3

    def test_missing_attribute_reads_none(self, blog):
        post = blog.Post()
        assert post.title is None
        assert post.has_attribute("title") is False

    def test_has_attribute_treats_none_as_absent(self, blog):
        post = blog.Post(title=None, views=0)
        assert post.has_attribute("title") is False
        assert post.has_attribute("views") is True

    def test_set_attribute_chains(self, blog):
        post = blog.Post().set_attribute("title", "x").set_attribute("views", 2)
        assert post.get_attributes() == {"title": "x", "views": 2}

    def test_fill_rejects_non_mapping(self, blog):
        with pytest.raises(FillFault) as exc_info:
            blog.Post().fill(["title", "x"])
        assert exc_info.value.code == "INVALID_FILL"

    def test_private_names_raise_attribute_error(self, blog):
        with pytest.raises(AttributeError):
            blog.Post()._nothing

    def test_get_initial_unknown_attribute(self, blog):
        post = blog.Post.hydrate({"id": 1, "title": "x"})
        assert post.get_initial("title") == "x"
        with pytest.raises(AttributeFault):
            post.get_initial("views")

    def test_except_and_only_work_in_place(self, blog):
        post = blog.Post(title="x", views=1, body="b")
        assert post.except_attributes("body") is post
        assert post.get_attributes() == {"title": "x", "views": 1}
        post.only_attributes("views")
        assert post.get_attributes() == {"views": 1}

    def test_copy_is_independent(self, blog):
        post = blog.Post.hydrate({"id": 1, "title": "x"})
        clone = post.copy()
        clone.title = "y"
        assert post.title == "x"
        assert clone.get_initial("title") == "x"


# ============================================================================
# Dirty tracking
# ============================================================================


class TestDirtyTracking:
    """Test diff, is_dirty / is_clean and was_changed."""

    def test_hydrated_record_is_clean(self, blog):
        post = blog.Post.hydrate({"id": 1, "title": "x", "views": 3})
        assert post.is_clean()
        assert post.is_dirty() is False
        assert post.get_attributes_diff() == {}

    def test_changed_attribute_is_dirty(self, blog):
        post = blog.Post.hydrate({"id": 1, "title": "x", "views": 3})
        post.title = "y"
        assert post.is_dirty()
        assert post.is_dirty("title")
        assert post.is_dirty("views") is False
        assert post.is_clean("views")
        assert post.get_attributes_diff() == {"title": "y"}

    def test_reverting_value_cleans(self, blog):
        post = blog.Post.hydrate({"id": 1, "title": "x"})
        post.title = "y"
        post.title = "x"
        assert post.is_clean()

    def test_keys_outside_snapshot_are_not_diffed(self, blog):
        post = blog.Post.hydrate({"id": 1, "title": "x"})
        post.views = 9
        assert post.get_attributes_diff() == {}

    def test_unchanged_save_issues_no_statement(self, blog):
        database = MagicMock()
        set_database(database)
        post = blog.Post.hydrate({"id": 1, "title": "x"})
        assert post.save() == 1
        database.execute.assert_not_called()
        assert post.was_changed() is False

    def test_save_writes_only_the_diff(self, blog):
        database = MagicMock()
        set_database(database)
        post = blog.Post.hydrate({"id": 1, "title": "x", "views": 3})
        post.title = "y"
        post.save()
        database.execute.assert_called_once_with(
            'UPDATE "posts" SET "title" = ? WHERE ("posts"."id" = ?)',
            ["y", 1],
        )
        assert post.was_changed("title")
        assert post.was_changed("views") is False
        assert post.changed == {"title": "y"}
        assert post.is_clean()
        assert post.get_initial("title") == "y"


# ============================================================================
# Persistence
# ============================================================================


class TestPersistence:
    """Test insert, update and delete against SQLite."""

    def test_save_inserts_new_record(self, blog_db):
        post = blog_db.Post({"title": "New"})
        new_id = post.save()
        assert isinstance(new_id, int)
        assert post.id == new_id
        assert post.views == 0
        assert post.published is False
        assert post.body is None
        assert post.is_clean()
        assert post.get_initial("title") == "New"

    def test_create_returns_persisted_record(self, blog_db):
        post = blog_db.Post.create({"title": "Created"}, views=5)
        assert post.id is not None
        assert blog_db.Post.find(post.id).views == 5

    def test_update_round_trip(self, seeded):
        post = seeded.Post.find(1)
        post.title = "Changed"
        post.save()
        assert seeded.Post.find(1).title == "Changed"
        assert post.was_changed("title")

    def test_cached_relation_is_not_written(self, seeded):
        post = seeded.Post.find(1)
        assert post.user.name == "alice"
        post.views = 11
        post.save()
        assert seeded.Post.find(1).views == 11

    def test_delete(self, seeded):
        post = seeded.Post.find(2)
        assert post.delete() == 1
        assert seeded.Post.find(2) is None
        assert post.title == "Second"

    def test_delete_without_id(self, blog_db):
        with pytest.raises(MissingIdentifierFault):
            blog_db.Post(title="x").delete()


class TestFinders:
    """Test class-level lookups."""

    def test_find_single(self, seeded):
        post = seeded.Post.find(3)
        assert isinstance(post, seeded.Post)
        assert post.title == "Bob's post"

    def test_find_missing_returns_none(self, seeded):
        assert seeded.Post.find(99) is None

    def test_find_list_returns_collection(self, seeded):
        posts = seeded.Post.find([1, 4])
        assert isinstance(posts, Collection)
        assert sorted(posts.pluck("id")) == [1, 4]

    def test_find_or_fail(self, seeded):
        assert seeded.Post.find_or_fail(1).id == 1
        with pytest.raises(RecordNotFoundFault) as exc_info:
            seeded.Post.find_or_fail(99)
        assert exc_info.value.code == "RECORD_NOT_FOUND"

    def test_find_or_fail_empty_list(self, seeded):
        with pytest.raises(RecordNotFoundFault):
            seeded.Post.find_or_fail([98, 99])

    def test_all(self, seeded):
        assert len(seeded.Post.all()) == 4

    def test_all_with_columns(self, seeded):
        users = seeded.User.all("id", "name")
        assert users.first().get_attributes() == {"id": 1, "name": "alice"}

    def test_where_shortcut(self, seeded):
        assert seeded.Post.where("views", 100, ">").count() == 2

    def test_destroy_variadic(self, seeded):
        assert seeded.Post.destroy(1, 2) == 2
        assert seeded.Post.query().count() == 2

    def test_destroy_list(self, seeded):
        assert seeded.Post.destroy([3]) == 1
        assert seeded.Post.find(3) is None


class TestRefresh:
    """Test reloading records."""

    def test_refresh_in_place(self, seeded):
        post = seeded.Post.find(1)
        post.title = "local edit"
        seeded.Post.query().where("id", 1).update({"title": "remote edit"})
        assert post.refresh() is post
        assert post.title == "remote edit"
        assert post.is_clean()

    def test_refresh_drops_cached_relations(self, seeded):
        post = seeded.Post.find(1)
        post.user
        post.refresh()
        assert "user" not in post.get_attributes()

    def test_refresh_missing_row(self, seeded):
        post = seeded.Post.find(1)
        seeded.Post.destroy(1)
        with pytest.raises(RecordNotFoundFault):
            post.refresh()

    def test_fresh_returns_new_instance(self, seeded):
        post = seeded.Post.find(1)
        post.title = "local"
        fresh = post.fresh()
        assert fresh is not post
        assert fresh.title == "Hello"
        assert post.title == "local"

    def test_fresh_missing_row(self, seeded):
        post = seeded.Post.find(1)
        seeded.Post.destroy(1)
        assert post.fresh() is None

    def test_refresh_without_id(self, blog_db):
        with pytest.raises(MissingIdentifierFault):
            blog_db.Post().refresh()


# ============================================================================
# Identity & serialization
# ============================================================================


class TestIdentity:
    """Test record equality."""

    def test_same_table_and_id(self, blog):
        a = blog.Post.hydrate({"id": 1, "title": "a"})
        b = blog.Post.hydrate({"id": 1, "title": "b"})
        assert a.is_same(b)
        assert a == b
        assert hash(a) == hash(b)

    def test_different_tables(self, blog):
        post = blog.Post.hydrate({"id": 1})
        tag = blog.Tag.hydrate({"id": 1})
        assert not post.is_same(tag)
        assert post != tag

    def test_new_records_compare_by_identity(self, blog):
        a, b = blog.Post(title="x"), blog.Post(title="x")
        assert a != b
        assert a == a


class TestSerialization:
    """Test to_dict / to_json."""

    def test_datetime_format(self, seeded):
        data = seeded.Post.find(1).to_dict()
        assert data["created_at"] == "2024-01-01 10:00:00"
        assert data["published"] is True

    def test_nested_relations(self, seeded):
        post = seeded.Post.find(1)
        post.user
        data = post.to_dict()
        assert data["user"]["name"] == "alice"

    def test_to_json(self, blog):
        post = blog.Post.hydrate({"id": 1, "created_at": datetime.datetime(2024, 5, 6, 7, 8, 9)})
        assert json.loads(post.to_json()) == {"id": 1, "created_at": "2024-05-06 07:08:09"}

    def test_repr(self, blog):
        assert repr(blog.Post.hydrate({"id": 7})) == "<Post id=7>"

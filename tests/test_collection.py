"""
Tests for Collection — the typed, ordered record container.

Works entirely in memory; no database is needed.
"""

import json

import pytest

from tessera.faults import CollectionTypeFault, UsageFault
from tessera.models import Collection


@pytest.fixture
def posts(blog):
    """Five hydrated posts (ids 1..5) with a NULL rating on post 3."""
    rows = [
        {"id": 1, "title": "a", "views": 10, "rating": 4.0, "published": True, "user_id": 1},
        {"id": 2, "title": "b", "views": 250, "rating": 2.5, "published": False, "user_id": 1},
        {"id": 3, "title": "c", "views": 40, "rating": None, "published": True, "user_id": 2},
        {"id": 4, "title": "d", "views": 1000, "rating": 5.0, "published": True, "user_id": 3},
        {"id": 5, "title": "e", "views": 250, "rating": 1.0, "published": False, "user_id": 2},
    ]
    return Collection(blog.Post, [blog.Post.hydrate(row) for row in rows])


# ============================================================================
# Type discipline
# ============================================================================


class TestTypeDiscipline:
    """Test that every element has the declared record type."""

    def test_rejects_foreign_type_on_construction(self, blog):
        with pytest.raises(CollectionTypeFault) as exc_info:
            Collection(blog.Post, [blog.Post(), blog.Tag()])
        assert exc_info.value.code == "COLLECTION_TYPE_MISMATCH"
        assert isinstance(exc_info.value, TypeError)

    def test_push_is_all_or_nothing(self, blog, posts):
        with pytest.raises(CollectionTypeFault):
            posts.push(blog.Post(), blog.Tag())
        assert len(posts) == 5

    def test_setitem_checked(self, blog, posts):
        with pytest.raises(CollectionTypeFault):
            posts[0] = blog.User()
        assert posts[0].id == 1

    def test_prepend_and_concat(self, blog, posts):
        posts.prepend(blog.Post(id=0))
        posts.concat([blog.Post(id=6)])
        assert posts.pluck("id") == [0, 1, 2, 3, 4, 5, 6]
        with pytest.raises(CollectionTypeFault):
            posts.concat([blog.Tag()])

    def test_merge_requires_same_class(self, blog, posts):
        with pytest.raises(CollectionTypeFault):
            posts.merge(Collection(blog.Tag))
        merged = posts.merge(Collection(blog.Post, [blog.Post(id=9)]))
        assert merged is posts
        assert posts.last().id == 9


# ============================================================================
# Access & protocol
# ============================================================================


class TestAccess:
    """Test indexing and lookups."""

    def test_protocol(self, posts):
        assert len(posts) == 5
        assert [p.id for p in posts] == [1, 2, 3, 4, 5]
        assert posts[1].id == 2
        assert isinstance(posts[1:3], Collection)
        assert posts[1:3].pluck("id") == [2, 3]

    def test_contains_record(self, blog, posts):
        assert blog.Post.hydrate({"id": 3}) in posts

    def test_first_last(self, posts):
        assert posts.first().id == 1
        assert posts.last().id == 5
        assert posts.first(lambda p: p.views > 100).id == 2
        assert posts.last(lambda p: p.views > 100).id == 5

    def test_empty(self, blog):
        empty = Collection(blog.Post)
        assert empty.first() is None
        assert empty.last() is None
        assert empty.is_empty()
        assert empty.random() is None

    def test_get(self, posts):
        assert posts.get(0).id == 1
        assert posts.get(50, "missing") == "missing"

    def test_find(self, posts):
        assert posts.find(4).title == "d"
        assert posts.find(99) is None

    def test_search_is_strict(self, posts):
        assert posts.search("views", 250) == 1
        assert posts.search("views", "250") is None

    def test_random(self, posts):
        assert posts.random() in posts
        sample = posts.random(3)
        assert len(sample) == 3
        with pytest.raises(UsageFault):
            posts.random(10)


# ============================================================================
# Inspection & aggregation
# ============================================================================


class TestInspection:
    """Test contains / has / keys / duplicates / aggregates."""

    def test_contains_by_value(self, posts):
        assert posts.contains("views", 250)
        assert posts.contains("views", 250.0)
        assert not posts.contains_strict("views", 250.0)
        assert posts.contains_strict("views", 250)

    def test_has(self, posts):
        assert posts.has("title")
        assert not posts.has("rating")

    def test_every(self, posts):
        assert posts.every(lambda p: p.views >= 10)
        assert not posts.every(lambda p: p.published)

    def test_keys(self, posts):
        assert posts.keys() == ["id", "title", "views", "rating", "published", "user_id"]

    def test_keys_by(self, posts):
        assert posts.keys_by()["id"] == [1, 2, 3, 4, 5]

    def test_duplicates(self, posts):
        assert posts.duplicates("views") == [250]
        assert posts.duplicates("user_id") == [1, 2]

    def test_aggregates_skip_none(self, posts):
        assert posts.sum("views") == 1550
        assert posts.avg("rating") == 3.125
        assert posts.min("rating") == 1.0
        assert posts.max("views") == 1000

    def test_aggregates_on_empty(self, blog):
        empty = Collection(blog.Post)
        assert empty.avg("views") is None
        assert empty.min("views") is None
        assert empty.sum("views") == 0

    def test_pluck_map_join(self, posts):
        assert posts.pluck("title") == ["a", "b", "c", "d", "e"]
        assert posts.map(lambda p: p.views * 2)[:2] == [20, 500]
        assert posts.join("title", "-") == "a-b-c-d-e"

    def test_reduce(self, posts):
        assert posts.reduce(lambda acc, p: acc + p.views, 0) == 1550

    def test_each_stops_on_false(self, posts):
        seen = []

        def visit(post):
            seen.append(post.id)
            if post.id == 2:
                return False

        assert posts.each(visit) is posts
        assert seen == [1, 2]

    def test_values(self, posts):
        assert posts.values()[0]["title"] == "a"


# ============================================================================
# Selecting
# ============================================================================


class TestWhere:
    """Test the where family."""

    def test_where_dispatch(self, posts):
        assert posts.where("published").pluck("id") == [1, 3, 4]
        assert posts.where("views", 250).pluck("id") == [2, 5]
        assert posts.where("views", ">", 100).pluck("id") == [2, 4, 5]

    def test_where_too_many_arguments(self, posts):
        with pytest.raises(UsageFault):
            posts.where("views", ">", 1, 2)

    def test_where_unknown_operator(self, posts):
        with pytest.raises(UsageFault):
            posts.where("views", "~", 1)

    def test_strict_operators(self, posts):
        assert posts.where("views", "===", "250").is_empty()
        assert posts.where("views", "===", 250).pluck("id") == [2, 5]
        assert len(posts.where("views", "!==", "250")) == 5

    def test_ordering_against_none_is_false(self, posts):
        assert 3 not in posts.where("rating", "<", 3.0).pluck("id")
        assert 3 not in posts.where("rating", ">=", 0).pluck("id")

    def test_between(self, posts):
        assert posts.where_between("views", [10, 250]).pluck("id") == [1, 2, 3, 5]
        assert posts.where_not_between("views", [10, 250]).pluck("id") == [4]

    def test_in_and_null(self, posts):
        assert posts.where_in("user_id", [2, 3]).pluck("id") == [3, 4, 5]
        assert posts.where_not_in("user_id", [2, 3]).pluck("id") == [1, 2]
        assert posts.where_null("rating").pluck("id") == [3]
        assert posts.where_not_null("rating").pluck("id") == [1, 2, 4, 5]

    def test_first_where(self, posts):
        assert posts.first_where("views", ">=", 1000).id == 4
        assert posts.first_where("views", 7) is None

    def test_selecting_returns_new_collection(self, posts):
        result = posts.where("published")
        assert result is not posts
        assert len(posts) == 5


class TestSelecting:
    """Test filter / reject / partition / diff / except_ / only."""

    def test_filter_and_reject(self, posts):
        assert posts.filter(lambda p: p.views > 100).pluck("id") == [2, 4, 5]
        assert posts.reject(lambda p: p.views > 100).pluck("id") == [1, 3]

    def test_partition(self, posts):
        published, drafts = posts.partition(lambda p: p.published)
        assert published.pluck("id") == [1, 3, 4]
        assert drafts.pluck("id") == [2, 5]

    def test_diff(self, blog, posts):
        other = Collection(blog.Post, [blog.Post.hydrate({"id": 2}), blog.Post.hydrate({"id": 4})])
        assert posts.diff(other).pluck("id") == [1, 3, 5]

    def test_except_copies(self, posts):
        trimmed = posts.except_("rating", "published")
        assert "rating" not in trimmed.first().get_attributes()
        assert "rating" in posts.first().get_attributes()

    def test_only_copies(self, posts):
        slim = posts.only("id", "title")
        assert slim.first().get_attributes() == {"id": 1, "title": "a"}
        assert posts.first().views == 10


class TestOrdering:
    """Test sort / slice / take / chunk / split and in-place reordering."""

    def test_sort_is_stable(self, posts):
        assert posts.sort("views").pluck("id") == [1, 3, 2, 5, 4]
        assert posts.sort("views", desc=True).pluck("id") == [4, 2, 5, 3, 1]

    def test_sort_none_last_ascending(self, posts):
        assert posts.sort("rating").pluck("id")[-1] == 3
        assert posts.sort("rating", desc=True).pluck("id")[0] == 3

    def test_slice_skip_take(self, posts):
        assert posts.slice(1, 2).pluck("id") == [2, 3]
        assert posts.slice(3).pluck("id") == [4, 5]
        assert posts.skip(3).pluck("id") == [4, 5]
        assert posts.take(2).pluck("id") == [1, 2]
        assert posts.take(-2).pluck("id") == [4, 5]

    def test_chunk(self, posts):
        assert [c.pluck("id") for c in posts.chunk(2)] == [[1, 2], [3, 4], [5]]
        with pytest.raises(UsageFault):
            posts.chunk(0)

    def test_split(self, posts):
        assert [c.pluck("id") for c in posts.split(3)] == [[1, 2], [3, 4], [5]]
        assert [len(c) for c in posts.split(2)] == [3, 2]
        assert len(posts.split(10)) == 5

    def test_reverse_in_place(self, posts):
        assert posts.reverse() is posts
        assert posts.pluck("id") == [5, 4, 3, 2, 1]

    def test_shuffle_keeps_members(self, posts):
        posts.shuffle()
        assert sorted(posts.pluck("id")) == [1, 2, 3, 4, 5]

    def test_shift_and_pop(self, blog, posts):
        assert posts.shift().id == 1
        assert posts.pop().id == 5
        assert posts.pluck("id") == [2, 3, 4]
        assert Collection(blog.Post).pop() is None


class TestSerialization:
    """Test to_list / to_json."""

    def test_to_json(self, posts):
        data = json.loads(posts.take(1).to_json())
        assert data == [
            {"id": 1, "title": "a", "views": 10, "rating": 4.0, "published": True, "user_id": 1}
        ]

    def test_repr(self, posts):
        assert repr(posts) == "<Collection Post (5 items)>"

"""
NoteKeeper Backend — Storage Contract Tests
=============================================

What:  The shared repository semantics, run against both backends through
       the parametrized `storage` fixture.

What we test:
    ✅ New-note defaults and tag normalization
    ✅ Owner-scoped reads hide other users' records
    ✅ Partial updates keep untouched fields; updated_at strictly increases
    ✅ Idempotent delete, AccessDeniedError for foreign writes
    ✅ Category delete clears category_id on its notes and nothing else
    ✅ Listing filters and "pinned first, newest first" ordering
    ✅ User uniqueness, counts, admin bootstrap, aggregation helpers
"""

import pytest

from notekeeper.exceptions import AccessDeniedError, NotFoundError, ValidationError
from notekeeper.schemas.domain import NoteFilters


class TestNoteRepository:
    """Note CRUD semantics shared by both backends."""

    @pytest.mark.asyncio
    async def test_create_applies_defaults(self, storage, two_users):
        note = await storage.notes.create(two_users["alice"], title="T")

        assert note.id
        assert note.user_id == two_users["alice"]
        assert note.is_pinned is False
        assert note.is_favorite is False
        assert note.is_archived is False
        assert note.view_count == 0
        assert note.tags == []
        assert note.category_id is None

    @pytest.mark.asyncio
    async def test_create_keeps_pinned_and_dedupes_tags(self, storage, two_users):
        note = await storage.notes.create(
            two_users["alice"], title="T", is_pinned=True, tags=["work", "urgent", "work", " "]
        )

        assert note.is_pinned is True
        assert note.tags == ["work", "urgent"]

    @pytest.mark.asyncio
    async def test_get_by_id_hides_foreign_note(self, storage, two_users):
        note = await storage.notes.create(two_users["alice"], title="private")

        assert await storage.notes.get_by_id(note.id, owner_id=two_users["bob"]) is None
        found = await storage.notes.get_by_id(note.id, owner_id=two_users["alice"])
        assert found is not None and found.title == "private"

    @pytest.mark.asyncio
    async def test_get_by_id_malformed_or_unknown_returns_none(self, storage, two_users):
        assert await storage.notes.get_by_id("no-such-note") is None
        assert await storage.notes.get_by_id("../../etc/passwd") is None
        assert await storage.categories.get_by_id("no-such-category") is None

    @pytest.mark.asyncio
    async def test_non_canonical_id_spellings_do_not_resolve(self, storage, two_users):
        owner = two_users["alice"]
        note = await storage.notes.create(owner, title="T")
        category = await storage.categories.create(owner, name="C", color="#000000")

        for alias in ("0" + note.id, " " + note.id, "+" + note.id, note.id + " "):
            assert await storage.notes.get_by_id(alias) is None
            assert await storage.notes.delete(alias, owner) is False
            with pytest.raises(NotFoundError):
                await storage.notes.update(alias, owner, {"title": "x"})
        for alias in ("0" + category.id, " " + category.id, "+" + category.id):
            assert await storage.categories.get_by_id(alias) is None

        assert (await storage.notes.get_by_id(note.id)).title == "T"


    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, storage, two_users):
        owner = two_users["alice"]
        note = await storage.notes.create(owner, title="T", content="body", tags=["a"])

        first = await storage.notes.update(note.id, owner, {"is_favorite": True})
        second = await storage.notes.update(note.id, owner, {"title": "T2"})

        assert second.title == "T2"
        assert second.content == "body"
        assert second.tags == ["a"]
        assert second.is_favorite is True
        assert note.updated_at < first.updated_at < second.updated_at
        assert second.created_at == note.created_at

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_field(self, storage, two_users):
        note = await storage.notes.create(two_users["alice"], title="T")

        with pytest.raises(ValidationError):
            await storage.notes.update(note.id, two_users["alice"], {"user_id": two_users["bob"]})

    @pytest.mark.asyncio
    async def test_update_foreign_note_is_access_denied(self, storage, two_users):
        note = await storage.notes.create(two_users["alice"], title="T")

        with pytest.raises(AccessDeniedError):
            await storage.notes.update(note.id, two_users["bob"], {"title": "hijacked"})

        unchanged = await storage.notes.get_by_id(note.id)
        assert unchanged.title == "T"

    @pytest.mark.asyncio
    async def test_update_missing_note_is_not_found(self, storage, two_users):
        with pytest.raises(NotFoundError):
            await storage.notes.update("424242", two_users["alice"], {"title": "x"})

    @pytest.mark.asyncio
    async def test_second_delete_returns_false(self, storage, two_users):
        owner = two_users["alice"]
        note = await storage.notes.create(owner, title="T")

        assert await storage.notes.delete(note.id, owner) is True
        assert await storage.notes.delete(note.id, owner) is False
        assert await storage.notes.get_by_id(note.id) is None

    @pytest.mark.asyncio
    async def test_delete_foreign_note_is_access_denied(self, storage, two_users):
        note = await storage.notes.create(two_users["alice"], title="T")

        with pytest.raises(AccessDeniedError):
            await storage.notes.delete(note.id, two_users["bob"])
        assert await storage.notes.get_by_id(note.id) is not None


class TestNoteListing:
    """Filters and ordering of list_by_owner."""

    @pytest.mark.asyncio
    async def test_tag_filter(self, storage, two_users):
        owner = two_users["alice"]
        tagged = await storage.notes.create(owner, title="a", tags=["work", "urgent"])
        await storage.notes.create(owner, title="b", tags=["home"])

        result = await storage.notes.list_by_owner(owner, NoteFilters(tag="work"))

        assert [n.id for n in result] == [tagged.id]

    @pytest.mark.asyncio
    async def test_pinned_first_then_most_recently_updated(self, storage, two_users):
        owner = two_users["alice"]
        t1 = await storage.notes.create(owner, title="t1")
        t2 = await storage.notes.create(owner, title="t2")
        t3 = await storage.notes.create(owner, title="t3")

        await storage.notes.update(t1.id, owner, {"content": "first"})
        await storage.notes.update(t2.id, owner, {"is_pinned": True})
        await storage.notes.update(t3.id, owner, {"content": "third"})

        result = await storage.notes.list_by_owner(owner)

        assert [n.id for n in result] == [t2.id, t3.id, t1.id]

    @pytest.mark.asyncio
    async def test_flag_and_owner_filters(self, storage, two_users):
        alice, bob = two_users["alice"], two_users["bob"]
        plain = await storage.notes.create(alice, title="plain")
        fav = await storage.notes.create(alice, title="fav")
        archived = await storage.notes.create(alice, title="old")
        await storage.notes.create(bob, title="bob's")
        await storage.notes.update(fav.id, alice, {"is_favorite": True})
        await storage.notes.update(archived.id, alice, {"is_archived": True})

        active = await storage.notes.list_by_owner(alice, NoteFilters(is_archived=False))
        favorites = await storage.notes.list_by_owner(
            alice, NoteFilters(is_archived=False, is_favorite=True)
        )
        archive = await storage.notes.list_by_owner(alice, NoteFilters(is_archived=True))

        assert {n.id for n in active} == {plain.id, fav.id}
        assert [n.id for n in favorites] == [fav.id]
        assert [n.id for n in archive] == [archived.id]

    @pytest.mark.asyncio
    async def test_category_filter(self, storage, two_users):
        owner = two_users["alice"]
        work = await storage.categories.create(owner, name="Work", color="#112233")
        filed = await storage.notes.create(owner, title="filed", category_id=work.id)
        await storage.notes.create(owner, title="loose")

        result = await storage.notes.list_by_owner(owner, NoteFilters(category_id=work.id))

        assert [n.id for n in result] == [filed.id]


class TestCategoryRepository:

    @pytest.mark.asyncio
    async def test_list_is_ordered_by_name_case_insensitively(self, storage, two_users):
        owner = two_users["alice"]
        for name in ("beta", "Alpha", "gamma"):
            await storage.categories.create(owner, name=name, color="#000000")
        await storage.categories.create(two_users["bob"], name="Aardvark", color="#000000")

        names = [c.name for c in await storage.categories.list_by_owner(owner)]

        assert names == ["Alpha", "beta", "gamma"]

    @pytest.mark.asyncio
    async def test_foreign_category_hidden_and_protected(self, storage, two_users):
        category = await storage.categories.create(two_users["alice"], name="Mine", color="#abcdef")

        assert await storage.categories.get_by_id(category.id, owner_id=two_users["bob"]) is None
        with pytest.raises(AccessDeniedError):
            await storage.categories.update(category.id, two_users["bob"], {"name": "Theirs"})
        with pytest.raises(AccessDeniedError):
            await storage.categories.delete(category.id, two_users["bob"])

    @pytest.mark.asyncio
    async def test_update_changes_only_given_fields(self, storage, two_users):
        owner = two_users["alice"]
        category = await storage.categories.create(
            owner, name="Work", color="#112233", description="desk"
        )

        updated = await storage.categories.update(category.id, owner, {"color": "#445566"})

        assert updated.name == "Work"
        assert updated.description == "desk"
        assert updated.color == "#445566"
        assert updated.updated_at > category.updated_at

    @pytest.mark.asyncio
    async def test_delete_clears_category_on_notes_only(self, storage, two_users):
        owner = two_users["alice"]
        doomed = await storage.categories.create(owner, name="Doomed", color="#000000")
        kept = await storage.categories.create(owner, name="Kept", color="#ffffff")
        n1 = await storage.notes.create(owner, title="n1", category_id=doomed.id, tags=["x"])
        n2 = await storage.notes.create(owner, title="n2", category_id=kept.id)

        assert await storage.categories.delete(doomed.id, owner) is True

        after_n1 = await storage.notes.get_by_id(n1.id)
        after_n2 = await storage.notes.get_by_id(n2.id)
        assert after_n1.category_id is None
        assert after_n1.title == "n1"
        assert after_n1.tags == ["x"]
        assert after_n2.category_id == kept.id
        assert await storage.categories.get_by_id(doomed.id) is None
        assert await storage.categories.delete(doomed.id, owner) is False

    @pytest.mark.asyncio
    async def test_note_cannot_reference_deleted_category(self, storage, two_users):
        owner = two_users["alice"]
        gone = await storage.categories.create(owner, name="Gone", color="#000000")
        note = await storage.notes.create(owner, title="T")
        await storage.categories.delete(gone.id, owner)

        with pytest.raises(ValidationError):
            await storage.notes.create(owner, title="late", category_id=gone.id)
        with pytest.raises(ValidationError):
            await storage.notes.update(note.id, owner, {"category_id": gone.id})

        assert (await storage.notes.get_by_id(note.id)).category_id is None
        assert len(await storage.notes.list_by_owner(owner)) == 1


    @pytest.mark.asyncio
    async def test_count_by_category(self, storage, two_users):
        owner = two_users["alice"]
        work = await storage.categories.create(owner, name="Work", color="#000000")
        await storage.notes.create(owner, title="a", category_id=work.id)
        await storage.notes.create(owner, title="b", category_id=work.id)
        await storage.notes.create(owner, title="c")

        counts = await storage.notes.count_by_category(owner)

        assert counts == {work.id: 2}


class TestUserRepository:

    @pytest.mark.asyncio
    async def test_default_admin_is_seeded(self, storage):
        admin = await storage.users.get_by_username("admin")

        assert admin is not None
        assert admin.is_admin is True
        assert admin.is_active is True
        assert await storage.users.count(is_admin=True) == 1

    @pytest.mark.asyncio
    async def test_initialize_twice_does_not_reseed(self, storage):
        await storage.initialize()

        assert await storage.users.count() == 1

    @pytest.mark.asyncio
    async def test_create_uses_default_preferences(self, storage, two_users):
        alice = await storage.users.get_by_id(two_users["alice"])

        assert alice.preferences == {"theme": "system", "markdown": True}
        assert alice.is_admin is False
        assert alice.last_login is None

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, storage, two_users):
        with pytest.raises(ValidationError):
            await storage.users.create(
                username="alice2", email="alice@example.com", password_hash="x"
            )

    @pytest.mark.asyncio
    async def test_lookup_by_email_and_username(self, storage, two_users):
        by_email = await storage.users.get_by_email("bob@example.com")
        by_name = await storage.users.get_by_username("bob")

        assert by_email.id == by_name.id == two_users["bob"]
        assert await storage.users.get_by_email("nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_update_and_counts(self, storage, two_users):
        await storage.users.update(two_users["bob"], {"is_active": False})

        assert await storage.users.count() == 3
        assert await storage.users.count(is_active=True) == 2
        assert await storage.users.count(is_active=True, is_admin=True) == 1

    @pytest.mark.asyncio
    async def test_update_missing_user_is_not_found(self, storage):
        with pytest.raises(NotFoundError):
            await storage.users.update("987654", {"is_active": False})

    @pytest.mark.asyncio
    async def test_list_all_newest_first(self, storage, two_users):
        names = [u.username for u in await storage.users.list_all()]

        assert names == ["bob", "alice", "admin"]


class TestAggregates:

    @pytest.mark.asyncio
    async def test_counts_and_recent_notes(self, storage, two_users):
        await storage.categories.create(two_users["alice"], name="C", color="#000000")
        for i in range(7):
            await storage.notes.create(two_users["alice"], title=f"n{i}")

        recent = await storage.notes.list_recent(5)

        assert await storage.notes.count() == 7
        assert await storage.categories.count() == 1
        assert [n.title for n in recent] == ["n6", "n5", "n4", "n3", "n2"]

    @pytest.mark.asyncio
    async def test_health_check(self, storage):
        assert await storage.health_check() is True

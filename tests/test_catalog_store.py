"""Unit tests for catalog/store.py.

Covers:
- org scoping: get/update/delete with another org's id behave like "missing"
- list filters and pagination, joined artist_name / album_name
- cascading deletes (artist -> albums -> tracks -> favorites)
- favorites: item_exists, duplicates -> ConflictError, per-user removal
"""

import pytest

from catalog.models import Album, Artist, Favorite, Track
from catalog.store import CatalogStore
from core.errors import ConflictError

ORG = "org-a"
OTHER = "org-b"


@pytest.fixture
def store():
    s = CatalogStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def seeded(store):
    """One artist with one album holding two tracks, all in ORG."""
    artist = store.create_artist(Artist(name="Nina Simone", organization_id=ORG, grammy=True))
    album = store.create_album(Album(name="Pastel Blues", artist_id=artist.id, organization_id=ORG, year=1965))
    t1 = store.create_track(
        Track(name="Be My Husband", artist_id=artist.id, album_id=album.id, organization_id=ORG, duration=180)
    )
    t2 = store.create_track(
        Track(name="Sinnerman", artist_id=artist.id, album_id=album.id, organization_id=ORG, duration=622)
    )
    return artist, album, t1, t2


class TestArtists:
    def test_create_and_get(self, store):
        artist = store.create_artist(Artist(name="Miles Davis", organization_id=ORG))
        assert artist.id and artist.created_at
        assert store.get_artist(ORG, artist.id).name == "Miles Davis"
        assert store.get_artist(OTHER, artist.id) is None

    def test_list_filters_and_paginates(self, store):
        for name, grammy in (("C", True), ("A", False), ("B", True)):
            store.create_artist(Artist(name=name, organization_id=ORG, grammy=grammy))
        store.create_artist(Artist(name="Z", organization_id=OTHER))

        assert [a.name for a in store.list_artists(ORG)] == ["A", "B", "C"]
        assert [a.name for a in store.list_artists(ORG, grammy=True)] == ["B", "C"]
        assert [a.name for a in store.list_artists(ORG, limit=1, offset=1)] == ["B"]

    def test_update_is_scoped(self, store):
        artist = store.create_artist(Artist(name="Old", organization_id=ORG))
        assert store.update_artist(OTHER, artist.id, name="Hijacked") is False
        assert store.update_artist(ORG, artist.id, name="New", hidden=True) is True
        updated = store.get_artist(ORG, artist.id)
        assert updated.name == "New"
        assert updated.hidden is True

    def test_update_rejects_unknown_fields(self, store):
        artist = store.create_artist(Artist(name="X", organization_id=ORG))
        with pytest.raises(ValueError):
            store.update_artist(ORG, artist.id, organization_id=OTHER)

    def test_delete_cascades(self, store, seeded):
        artist, album, t1, _ = seeded
        store.create_favorite(Favorite(user_id="u1", category="track", item_id=t1.id, organization_id=ORG))
        store.create_favorite(Favorite(user_id="u1", category="album", item_id=album.id, organization_id=ORG))

        assert store.delete_artist(OTHER, artist.id) is None
        deleted = store.delete_artist(ORG, artist.id)
        assert deleted.name == "Nina Simone"

        assert store.get_album(ORG, album.id) is None
        assert store.list_tracks(ORG) == []
        assert store.list_favorites(ORG, "u1", "track") == []
        assert store.list_favorites(ORG, "u1", "album") == []


class TestAlbumsAndTracks:
    def test_album_carries_artist_name(self, store, seeded):
        _, album, _, _ = seeded
        assert store.get_album(ORG, album.id).artist_name == "Nina Simone"
        assert [a.year for a in store.list_albums(ORG)] == [1965]

    def test_track_carries_artist_and_album_names(self, store, seeded):
        _, _, t1, _ = seeded
        track = store.get_track(ORG, t1.id)
        assert track.artist_name == "Nina Simone"
        assert track.album_name == "Pastel Blues"

    def test_track_filters(self, store, seeded):
        artist, album, _, t2 = seeded
        store.update_track(ORG, t2.id, hidden=True)
        assert [t.name for t in store.list_tracks(ORG, album_id=album.id)] == ["Be My Husband", "Sinnerman"]
        assert [t.name for t in store.list_tracks(ORG, hidden=True)] == ["Sinnerman"]
        assert store.list_tracks(ORG, artist_id="nobody") == []
        assert store.list_tracks(OTHER, artist_id=artist.id) == []

    def test_delete_album_removes_its_tracks(self, store, seeded):
        artist, album, _, _ = seeded
        assert store.delete_album(ORG, album.id).name == "Pastel Blues"
        assert store.list_tracks(ORG) == []
        assert store.get_artist(ORG, artist.id) is not None

    def test_delete_track(self, store, seeded):
        _, _, t1, _ = seeded
        assert store.delete_track(OTHER, t1.id) is None
        assert store.delete_track(ORG, t1.id).name == "Be My Husband"
        assert store.get_track(ORG, t1.id) is None


class TestFavorites:
    def test_item_exists_is_scoped(self, store, seeded):
        artist, _, _, _ = seeded
        assert store.item_exists(ORG, "artist", artist.id)
        assert not store.item_exists(OTHER, "artist", artist.id)
        assert not store.item_exists(ORG, "album", artist.id)

    def test_list_includes_item_name(self, store, seeded):
        artist, _, _, _ = seeded
        store.create_favorite(Favorite(user_id="u1", category="artist", item_id=artist.id, organization_id=ORG))
        favorites = store.list_favorites(ORG, "u1", "artist")
        assert [f.name for f in favorites] == ["Nina Simone"]
        assert store.list_favorites(ORG, "u2", "artist") == []

    def test_duplicate_favorite_conflicts(self, store, seeded):
        artist, _, _, _ = seeded
        fav = Favorite(user_id="u1", category="artist", item_id=artist.id, organization_id=ORG)
        store.create_favorite(fav)
        with pytest.raises(ConflictError):
            store.create_favorite(fav)

    def test_delete_favorite_only_by_owner(self, store, seeded):
        artist, _, _, _ = seeded
        fav = store.create_favorite(
            Favorite(user_id="u1", category="artist", item_id=artist.id, organization_id=ORG)
        )
        assert store.delete_favorite(ORG, "u2", fav.id) is False
        assert store.delete_favorite(ORG, "u1", fav.id) is True
        assert store.delete_favorite(ORG, "u1", fav.id) is False

    def test_delete_favorites_for_user(self, store, seeded):
        artist, album, _, _ = seeded
        store.create_favorite(Favorite(user_id="u1", category="artist", item_id=artist.id, organization_id=ORG))
        store.create_favorite(Favorite(user_id="u1", category="album", item_id=album.id, organization_id=ORG))
        store.create_favorite(Favorite(user_id="u2", category="album", item_id=album.id, organization_id=ORG))
        assert store.delete_favorites_for_user("u1") == 2
        assert len(store.list_favorites(ORG, "u2", "album")) == 1

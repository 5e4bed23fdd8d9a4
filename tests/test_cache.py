import pytest

from cache import TagCache


def counter():
    calls = []

    def load():
        calls.append(1)
        return len(calls)
    return load, calls


def test_get_or_set_caches_per_key():
    cache = TagCache()
    load, calls = counter()
    assert cache.get_or_set("products", "a", load) == 1
    assert cache.get_or_set("products", "a", load) == 1
    assert cache.get_or_set("products", "b", load) == 2
    assert len(calls) == 2


def test_revalidate_drops_only_that_tag():
    cache = TagCache()
    cache.get_or_set("products", "a", lambda: "p")
    cache.get_or_set("pages", "a", lambda: "x")
    assert cache.revalidate("products") == 1
    assert cache.get_or_set("products", "a", lambda: "fresh") == "fresh"
    assert cache.get_or_set("pages", "a", lambda: "stale?") == "x"


def test_expired_entries_reload():
    cache = TagCache(ttl=-1)
    load, calls = counter()
    cache.get_or_set("products", "a", load)
    cache.get_or_set("products", "a", load)
    assert len(calls) == 2


def test_revalidate_during_load_is_not_overwritten():
    cache = TagCache()

    def slow_load():
        cache.revalidate("products")
        return "loaded before revalidate"

    assert cache.get_or_set("products", "a", slow_load) == "loaded before revalidate"
    assert cache.get_or_set("products", "a", lambda: "fresh") == "fresh"


def test_failed_load_is_not_cached():
    cache = TagCache()

    def boom():
        raise RuntimeError("down")

    with pytest.raises(RuntimeError):
        cache.get_or_set("products", "a", boom)
    assert cache.get_or_set("products", "a", lambda: "ok") == "ok"


def test_revalidate_endpoint(admin_client, make_product):
    make_product(name="Alpha")
    admin_client.get("/products")
    make_product(name="Bravo")

    r = admin_client.post("/revalidate")
    assert r.status_code == 200
    body = r.json()
    assert body["revalidated"] is True
    assert body["cache"] == "products"
    assert isinstance(body["now"], int)
    assert len(admin_client.get("/products").json()["products"]) == 2


def test_revalidate_requires_admin(client):
    r = client.post("/revalidate", json={"tag": "products"})
    assert r.status_code == 401


def test_expired_entries_are_dropped():
    cache = TagCache(ttl=0)
    for i in range(1000):
        cache.get_or_set("products", ("list", i), lambda: i)
    assert cache.size("products") <= 1


def test_live_entries_are_kept_when_sweeping():
    cache = TagCache(ttl=3600)
    for i in range(3):
        cache.get_or_set("products", i, lambda: i)
    assert cache.size("products") == 3

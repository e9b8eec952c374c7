from storefront.core.cache import DEFAULT_TTL, CacheTags, TimedCache


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_generate_key_is_order_independent():
    a = TimedCache.generate_key("products", {"limit": 6, "category": "x"})
    b = TimedCache.generate_key("products", {"category": "x", "limit": 6})
    assert a == b
    assert a.startswith("products:")


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = TimedCache(clock=clock)
    cache.set("k", "v", ttl=10)

    clock.now += 9
    assert cache.get("k") == "v"
    clock.now += 2
    assert cache.get("k") is None
    assert cache.stats()["size"] == 0


def test_ttl_false_never_expires_and_zero_never_serves():
    clock = FakeClock()
    cache = TimedCache(clock=clock)
    cache.set("forever", 1, ttl=False)
    cache.set("never", 2, ttl=0)

    clock.now += 10 ** 6
    assert cache.get("forever") == 1
    assert cache.get("never") is None


def test_get_or_set_loads_once():
    cache = TimedCache()
    calls = []

    def loader():
        calls.append(1)
        return ["a", "b"]

    assert cache.get_or_set("k", loader) == ["a", "b"]
    assert cache.get_or_set("k", loader) == ["a", "b"]
    assert len(calls) == 1
    assert cache.cache_stats["hits"] == 1


def test_invalidate_tag_drops_only_tagged_entries():
    cache = TimedCache()
    cache.set("products", 1, tags=[CacheTags.PRODUCTS])
    cache.set("featured", 2, tags=[CacheTags.FEATURED_PRODUCTS, CacheTags.PRODUCTS])
    cache.set("categories", 3, tags=[CacheTags.CATEGORIES])

    assert cache.invalidate_tag(CacheTags.PRODUCTS) == 2
    assert cache.get("products") is None
    assert cache.get("featured") is None
    assert cache.get("categories") == 3


def test_clean_expired_reports_counts():
    clock = FakeClock()
    cache = TimedCache(clock=clock)
    cache.set("short", 1, ttl=5)
    cache.set("long", 2, ttl=500)

    clock.now += 60
    assert cache.clean_expired() == {"cleaned": 1, "remaining": 1}


def test_entries_without_ttl_use_the_default():
    clock = FakeClock()
    cache = TimedCache(clock=clock)
    cache.set("k", "v")

    clock.now += DEFAULT_TTL - 1
    assert cache.get("k") == "v"
    clock.now += 1
    assert cache.get("k") is None

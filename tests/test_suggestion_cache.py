import os
import sys
import threading
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from suggestion_cache import SuggestionCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class SuggestionCacheTest(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.cache = SuggestionCache(capacity=3, ttl=600.0, clock=self.clock)

    def test_put_then_get(self) -> None:
        self.cache.put("k", {"sets": []})
        self.assertEqual(self.cache.get("k"), {"sets": []})
        self.assertIsNone(self.cache.get("missing"))

    def test_entries_expire_after_ttl(self) -> None:
        self.cache.put("k", "v")
        self.clock.now = 599.0
        self.assertEqual(self.cache.get("k"), "v")
        self.clock.now = 600.0
        self.assertIsNone(self.cache.get("k"))
        self.assertEqual(len(self.cache), 0)

    def test_overwrite_resets_ttl(self) -> None:
        self.cache.put("k", "old")
        self.clock.now = 500.0
        self.cache.put("k", "new")
        self.clock.now = 900.0
        self.assertEqual(self.cache.get("k"), "new")

    def test_least_recently_used_is_evicted(self) -> None:
        for key in ("a", "b", "c"):
            self.cache.put(key, key)
        self.cache.get("a")
        self.cache.put("d", "d")
        self.assertIsNone(self.cache.get("b"))
        self.assertEqual(self.cache.get("a"), "a")
        self.assertEqual(len(self.cache), 3)

    def test_invalidate(self) -> None:
        self.cache.put("a", 1)
        self.cache.put("b", 2)
        self.cache.invalidate("a")
        self.assertIsNone(self.cache.get("a"))
        self.cache.invalidate_all()
        self.assertEqual(len(self.cache), 0)

    def test_rejects_bad_limits(self) -> None:
        with self.assertRaises(ValueError):
            SuggestionCache(capacity=0)
        with self.assertRaises(ValueError):
            SuggestionCache(ttl=0)

    def test_concurrent_puts_keep_whole_values(self) -> None:
        cache = SuggestionCache(capacity=50)

        def writer(n: int) -> None:
            for i in range(200):
                cache.put(f"k{i % 20}", (n, i))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        for i in range(20):
            value = cache.get(f"k{i}")
            self.assertIsInstance(value, tuple)
            self.assertEqual(len(value), 2)


if __name__ == "__main__":
    unittest.main()

import re
import tempfile
import unittest
from pathlib import Path

from mermaid_svg.cache import ChartCache, State
from mermaid_svg.errors import ChartNotFoundError


class ChartCacheTests(unittest.TestCase):
    def test_identifier_format(self) -> None:
        record = ChartCache().register("flowchart LR\nA --> B")
        self.assertRegex(record.identifier, re.compile(r"^[a-z0-9]{10}$"))

    def test_register_extracts_metadata(self) -> None:
        record = ChartCache().register("figcaption Flow\nflowchart LR\nA --> B")
        self.assertEqual(record.definition, "figcaption Flow\nflowchart LR\nA --> B")
        self.assertEqual(record.caption, "Flow")
        self.assertNotIn("figcaption", record.chart)
        self.assertIs(record.state, State.PENDING)

    def test_same_definition_is_reused(self) -> None:
        cache = ChartCache()
        first = cache.register("flowchart LR\nA --> B")
        second = cache.register("flowchart LR\nA --> B")
        self.assertIs(first, second)
        self.assertEqual(len(cache), 1)
        self.assertEqual(cache.pending(), [first])

    def test_identity_is_exact_text(self) -> None:
        cache = ChartCache()
        first = cache.register("flowchart LR\nA --> B")
        second = cache.register("flowchart LR\nA -->  B")
        self.assertNotEqual(first.identifier, second.identifier)
        self.assertEqual(len(cache), 2)

    def test_rendered_entries_are_not_queued_again(self) -> None:
        cache = ChartCache()
        record = cache.register("flowchart LR\nA --> B")
        record.rendered(Path("chart.svg"))
        self.assertIs(cache.register("flowchart LR\nA --> B"), record)
        self.assertEqual(cache.pending(), [])

    def test_disabled_cache_queues_a_fresh_record(self) -> None:
        cache = ChartCache(enabled=False)
        first = cache.register("flowchart LR\nA --> B")
        first.rendered(Path("chart.svg"))
        second = cache.register("flowchart LR\nA --> B")
        self.assertIsNot(first, second)
        self.assertIs(cache.get("flowchart LR\nA --> B"), second)
        self.assertEqual(cache.pending(), [second])

    def test_pending_keeps_registration_order(self) -> None:
        cache = ChartCache()
        records = [cache.register(f"flowchart LR\nA{n} --> B") for n in range(5)]
        records[2].failed(RuntimeError("boom"))
        self.assertEqual(cache.pending(), [r for n, r in enumerate(records) if n != 2])

    def test_meta_takes_attributes_per_call(self) -> None:
        record = ChartCache().register("figcaption Flow\nflowchart LR\nA --> B")
        self.assertEqual(record.meta({"caption": "Other", "alt": "First"}).alt, "First")
        self.assertEqual(record.meta({"caption": "Other", "alt": "Second"}).caption, "Flow")
        self.assertIsNone(record.alt)

    def test_stale_when_format_changes(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            output = Path(tmp) / "chart.svg"
            output.write_text("<svg></svg>", encoding="utf-8")
            record = ChartCache().register("flowchart LR\nA --> B")
            self.assertFalse(record.stale("svg"))
            record.rendered(output)
            self.assertFalse(record.stale("svg"))
            self.assertTrue(record.stale("pdf"))
            record.assembled(b"<svg></svg>")
            self.assertTrue(record.stale("png"))

    def test_stale_when_output_is_gone(self) -> None:
        record = ChartCache().register("flowchart LR\nA --> B")
        record.rendered(Path("gone.svg"))
        self.assertTrue(record.stale("svg"))

    def test_reset(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            output = Path(tmp) / "chart.svg"
            output.write_text("<svg></svg>", encoding="utf-8")
            cache = ChartCache()
            record = cache.register("flowchart LR\nA --> B")
            record.rendered(output)
            record.reset()
            self.assertFalse(output.exists())
            self.assertIsNone(record.format)
            self.assertEqual(cache.pending(), [record])

    def test_missing_entry(self) -> None:
        with self.assertRaises(ChartNotFoundError):
            ChartCache().get("flowchart LR\nA --> B")

    def test_clear(self) -> None:
        cache = ChartCache()
        cache.register("flowchart LR\nA --> B")
        cache.clear()
        self.assertEqual(len(cache), 0)
        self.assertNotIn("flowchart LR\nA --> B", cache)


if __name__ == "__main__":
    unittest.main()

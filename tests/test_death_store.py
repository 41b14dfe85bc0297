"""
Tests for the flat-file death store.
"""

import json
import threading

from death_store import DeathStore


class TestLoad:
    """Tests for DeathStore.load recovery behaviour."""

    def test_missing_file_is_empty(self, tmp_path):
        assert DeathStore(str(tmp_path / "nope.json")).load() == []

    def test_invalid_json_is_empty(self, tmp_path):
        p = tmp_path / "deaths.json"
        p.write_text("[{not json", encoding="utf-8")
        assert DeathStore(str(p)).load() == []

    def test_non_array_is_empty(self, tmp_path):
        p = tmp_path / "deaths.json"
        p.write_text('{"id": "x"}', encoding="utf-8")
        assert DeathStore(str(p)).load() == []

    def test_skips_non_object_entries(self, tmp_path):
        p = tmp_path / "deaths.json"
        p.write_text('[{"id": "a"}, 3, "b", null]', encoding="utf-8")
        assert DeathStore(str(p)).load() == [{"id": "a"}]


class TestSave:
    """Tests for writing the store."""

    def test_round_trip_keeps_records(self, tmp_path):
        store = DeathStore.in_dir(str(tmp_path / "data"))
        rows = [
            {"id": f"id{i}", "player": f"P{i}", "realm": "Stormrage", "at": 1700000000 + i,
             "location": {"zone": "Duskwood", "x": 0.5, "y": 0.4}}
            for i in range(5)
        ]
        store.save(rows)
        assert store.load() == rows

    def test_unicode_is_written_verbatim(self, tmp_path):
        store = DeathStore(str(tmp_path / "deaths.json"))
        store.save([{"id": "a", "player": "Ñáxx"}])
        assert "Ñáxx" in (tmp_path / "deaths.json").read_text(encoding="utf-8")

    def test_no_temp_file_left_behind(self, tmp_path):
        store = DeathStore(str(tmp_path / "deaths.json"))
        store.save([])
        assert sorted(p.name for p in tmp_path.iterdir()) == ["deaths.json"]

    def test_overwrites_whole_file(self, tmp_path):
        store = DeathStore(str(tmp_path / "deaths.json"))
        store.save([{"id": "a"}, {"id": "b"}])
        store.save([{"id": "c"}])
        assert store.load() == [{"id": "c"}]


class TestAppendAndGet:
    """Tests for append and lookup."""

    def test_append_adds_to_end(self, tmp_path):
        store = DeathStore(str(tmp_path / "deaths.json"))
        store.append({"id": "a"})
        store.append({"id": "b"})
        assert [r["id"] for r in store.load()] == ["a", "b"]

    def test_append_recovers_from_corrupt_file(self, tmp_path):
        p = tmp_path / "deaths.json"
        p.write_text("garbage", encoding="utf-8")
        store = DeathStore(str(p))
        store.append({"id": "a"})
        assert json.loads(p.read_text(encoding="utf-8")) == [{"id": "a"}]

    def test_get(self, tmp_path):
        store = DeathStore(str(tmp_path / "deaths.json"))
        store.save([{"id": "a", "player": "A"}, {"id": "b", "player": "B"}])
        assert store.get("b") == {"id": "b", "player": "B"}
        assert store.get("zzz") is None


class TestEnsure:
    """Tests for bootstrapping the data directory."""

    def test_creates_empty_array(self, tmp_path):
        store = DeathStore.in_dir(str(tmp_path / "data"))
        store.ensure()
        assert (tmp_path / "data" / "deaths.json").read_text(encoding="utf-8") == "[]"

    def test_keeps_existing_file(self, tmp_path):
        store = DeathStore(str(tmp_path / "deaths.json"))
        store.save([{"id": "a"}])
        store.ensure()
        assert store.load() == [{"id": "a"}]


class TestConcurrentWrites:
    """Tests for saves and appends racing from several threads."""

    def test_concurrent_saves_leave_one_writers_list(self, tmp_path):
        path = tmp_path / "deaths.json"
        store = DeathStore(str(path))
        big = [{"id": f"big{i}", "player": "P" * 200, "bags": list(range(50))} for i in range(300)]
        small = [{"id": "small"}]
        errors = []

        def writer(rows):
            try:
                for _ in range(20):
                    DeathStore(str(path)).save(rows)
            except Exception as e:
                errors.append(e)

        for _ in range(10):
            threads = [threading.Thread(target=writer, args=(rows,)) for rows in (big, small)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

            assert errors == []
            with open(path, "r", encoding="utf-8") as f:
                on_disk = json.load(f)
            assert on_disk in (big, small)

        assert sorted(p.name for p in tmp_path.iterdir()) == ["deaths.json"]
        assert store.load() in (big, small)

    def test_concurrent_appends_keep_file_valid(self, tmp_path):
        path = tmp_path / "deaths.json"
        errors = []

        def appender(n):
            try:
                for i in range(15):
                    DeathStore(str(path)).append({"id": f"t{n}-{i}"})
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=appender, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        with open(path, "r", encoding="utf-8") as f:
            rows = json.load(f)
        # last writer wins: appends may be lost, but never invented or duplicated
        ids = [r["id"] for r in rows]
        assert 1 <= len(ids) <= 60
        assert len(set(ids)) == len(ids)
        assert all(i.startswith("t") for i in ids)

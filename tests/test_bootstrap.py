import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from lumina.bootstrap import bootstrap_service, load_seed_bundle, seed_store
from lumina.core.config import ActivityConfig, JudgeConfig, LuminaConfig, SeedConfig, StorageConfig
from lumina.judge.heuristic import HeuristicJudge
from lumina.storage.store import LuminaStore

REPO_ROOT = Path(__file__).resolve().parents[1]
SEED = REPO_ROOT / "data" / "seed" / "catalog.yaml"


class SeedBundleTests(unittest.TestCase):
    def test_repo_seed_is_consistent(self) -> None:
        bundle = load_seed_bundle(SEED)
        self.assertEqual([course.id for course in bundle.courses], ["c1", "c2", "c3"])
        self.assertEqual(bundle.courses[1].access_code, "zaitaku2024")
        self.assertTrue(any(user.id == "admin" for user in bundle.users))

    def test_seed_store_skips_seeded_store(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = LuminaStore(Path(tmpdir) / "lumina.sqlite")
            bundle = load_seed_bundle(SEED)
            self.assertTrue(seed_store(store, bundle))
            store.save_courses(bundle.courses[:1])
            self.assertFalse(seed_store(store, bundle))
            self.assertEqual(len(store.get_courses()), 1)
            self.assertTrue(seed_store(store, bundle, force=True))
            self.assertEqual(len(store.get_courses()), 3)

    def test_invalid_yaml_raises_value_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "seed.yaml"
            path.write_text("courses: [\n", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_seed_bundle(path)


class BootstrapServiceTests(unittest.TestCase):
    def test_missing_api_key_falls_back_to_heuristic_judge(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = LuminaConfig(
                storage=StorageConfig(sqlite_path=Path(tmpdir) / "lumina.sqlite"),
                activity=ActivityConfig(enabled=False),
                seed=SeedConfig(catalog_path=SEED),
                judge=JudgeConfig(use_llm=True, min_chars=25),
            )
            with mock.patch.dict(os.environ, {}, clear=True):
                with self.assertLogs("lumina.bootstrap", level="WARNING"):
                    service = bootstrap_service(repo_root=Path(tmpdir), config=config)
            self.assertIsInstance(service.gate.judge, HeuristicJudge)
            self.assertEqual(service.gate.judge.min_chars, 25)
            self.assertFalse(service.assistant.available)
            self.assertEqual(len(service.catalog()), 3)

    def test_seeding_can_be_disabled(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = LuminaConfig(
                storage=StorageConfig(sqlite_path=Path(tmpdir) / "lumina.sqlite"),
                activity=ActivityConfig(enabled=False),
                seed=SeedConfig(catalog_path=SEED, seed_on_startup=False),
            )
            service = bootstrap_service(repo_root=Path(tmpdir), config=config)
            self.assertEqual(len(service.catalog()), 0)


if __name__ == "__main__":
    unittest.main()

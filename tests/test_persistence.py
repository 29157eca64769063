from pathlib import Path

from milkrun.config import Settings
from milkrun.persistence.filesystem import FileStorage


def test_file_storage_creates_run_directory(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    run_dir = storage.make_run_directory(prefix="optimization_test")

    assert run_dir.exists()
    assert run_dir.is_dir()
    assert run_dir.parent == tmp_path / "outputs"
    assert run_dir.name.startswith("optimization_test_")


def test_file_storage_writes_json_and_csv(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    run_dir = storage.make_run_directory(label="Bole / Evening")

    summary_path = run_dir / "summary.json"
    clusters_path = run_dir / "clusters.csv"

    storage.write_json(summary_path, {"hello": "world"})
    storage.write_csv(clusters_path, "a,b\n1,2\n")

    assert run_dir.name.endswith("_bole-evening")
    assert summary_path.read_text(encoding="utf-8") == '{\n  "hello": "world"\n}'
    assert clusters_path.read_text(encoding="utf-8") == "a,b\n1,2\n"


def test_settings_parse_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("MILKRUN_FRONTEND_ALLOWED_ORIGINS", '["https://ops.example.com"]')
    monkeypatch.setenv("MILKRUN_CAPACITY_LIMIT_VAN", "12")

    settings = Settings(_env_file=None, dispatchable_statuses="paid, ready")

    assert settings.dispatchable_statuses == ("paid", "ready")
    assert settings.frontend_allowed_origins == ("https://ops.example.com",)
    assert settings.capacity_for("VAN") == 12
    assert settings.capacity_for("scooter") == settings.capacity_limit_default == 1
    assert settings.clamp_radius(None) == 3.0
    assert settings.clamp_radius(0.1) == 0.5

"""
Tests for stock_batch.orchestrator and stock_batch.cli.

End-to-end: settings file -> orchestrator -> staged upload -> enqueue ->
worker tick -> order priced and stock charged.
"""

from decimal import Decimal

import pytest
import yaml

from stock_batch.cli import main
from stock_batch.domain.types import FileJobStatus
from stock_batch.orchestrator import FileWorkerOrchestrator
from stock_config.loader import CONFIG_PATH_ENV, DEFAULTS_PATH, ENV_OVERRIDES, load_settings
from stock_kernel.db.engine import Database
from stock_kernel.models.inventory import InventoryItem, MaterialRemainder
from stock_kernel.models.order import Order


@pytest.fixture
def clean_env(monkeypatch):
    for var in list(ENV_OVERRIDES) + [CONFIG_PATH_ENV]:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def settings_file(tmp_path):
    """Packaged defaults with the database and upload dir moved under tmp_path."""
    with open(DEFAULTS_PATH) as f:
        raw = yaml.safe_load(f)
    raw["database"]["url"] = f"sqlite:///{tmp_path / 'worker.db'}"
    raw["worker"]["upload_dir"] = str(tmp_path / "uploads")
    raw["worker"]["batch_size"] = 2
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump(raw))
    return path


@pytest.fixture
def orchestrator(settings_file, clock):
    orch = FileWorkerOrchestrator.from_settings(
        load_settings(settings_file, env={}), clock=clock, create_tables=True,
    )
    yield orch
    orch.database.dispose()


class TestFromSettings:
    def test_builds_database_from_settings(self, orchestrator, tmp_path):
        assert orchestrator.database.dialect_name == "sqlite"
        assert orchestrator.database.url.endswith("worker.db")
        assert orchestrator.catalog.get_preset("dtf-57").width_cm == 57

    def test_components_follow_worker_settings(self, orchestrator, tmp_path):
        worker = orchestrator.create_worker(worker_id="file-worker-a")
        staging = orchestrator.create_staging()

        assert worker.worker_id == "file-worker-a"
        assert worker._batch_size == 2
        assert staging.directory == tmp_path / "uploads" / "tmp"

    def test_accepts_existing_database(self, settings, tmp_path, captured_logs):
        database = Database(f"sqlite:///{tmp_path / 'other.db'}")
        try:
            orch = FileWorkerOrchestrator.from_settings(settings, database=database)
            assert orch.database is database
        finally:
            database.dispose()
        ready = [r for r in captured_logs() if r["message"] == "file_worker_orchestrator_ready"]
        assert ready[0]["material_count"] == len(orch.catalog)


class TestEndToEnd:
    def test_upload_is_processed_by_worker_tick(self, orchestrator, pdf_bytes):
        db = orchestrator.database
        staged = orchestrator.create_staging().stage(
            pdf_bytes((57, 120)), "banner.pdf", "application/pdf",
        )
        with db.session_scope() as session:
            item = InventoryItem(
                code="dtf-57", name="DTF 57 cm", quantity=3, price_web=Decimal("13000"),
            )
            order = Order(material_id="dtf-57", payload={})
            session.add_all([item, order])
            session.flush()
            job = orchestrator.queue(session).enqueue(order.id, [staged])
            item_id, order_id = item.id, order.id

        handled = orchestrator.create_worker().tick()

        assert handled == 1
        with db.session_scope() as session:
            assert orchestrator.queue(session).get_job(job.job_id).status == (
                FileJobStatus.COMPLETED
            )
            order = session.get(Order, order_id)
            assert order.total == Decimal("15600")
            assert order.currency == "CLP"
            assert session.get(InventoryItem, item_id).quantity == 2
            remainder = session.query(MaterialRemainder).filter_by(inventory_id=item_id).one()
            assert remainder.remainder_cm == 20


class TestCli:
    def test_single_tick(self, settings_file, clean_env, tmp_path):
        code = main(["--config", str(settings_file), "--once", "--create-tables"])

        assert code == 0
        assert (tmp_path / "worker.db").exists()

    def test_missing_config_file(self, tmp_path, clean_env, capsys):
        code = main(["--config", str(tmp_path / "absent.yaml"), "--once"])

        assert code == 2
        assert "ERROR" in capsys.readouterr().err

    def test_invalid_override(self, settings_file, monkeypatch, clean_env, capsys):
        monkeypatch.setenv("FILE_JOB_BATCH_SIZE", "many")

        assert main(["--config", str(settings_file), "--once"]) == 2
        assert "FILE_JOB_BATCH_SIZE" in capsys.readouterr().err

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pymongo.errors import AutoReconnect, OperationFailure

from provision import main as provision_main
from provision.mandates.errors import (
    ConstraintViolation,
    IndexOperationError,
    NameConflict,
    ProvisioningConnectionError,
    ProvisioningFailed,
)


def make_container(db):
    mongo = MagicMock()
    mongo.__getitem__ = MagicMock(return_value=db)
    container = MagicMock()
    container.mongo_client.return_value = mongo
    return container, mongo


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch.object(provision_main, "configure_logging"):
        yield


class TestMain:
    @pytest.mark.asyncio
    async def test_success_prints_confirmation(self, capsys):
        container, mongo = make_container(MagicMock())
        outcomes = [{"collection": "mandates", "name": "idx_mandate_lookup", "status": "created"}]

        with patch.object(provision_main, "AppContainer", return_value=container), \
             patch.object(provision_main, "check_connection", new=AsyncMock()), \
             patch.object(provision_main, "ensure_mandate_indexes", new=AsyncMock(return_value=outcomes)):
            code = await provision_main.main()

        assert code == 0
        assert "Indexes created successfully" in capsys.readouterr().out
        mongo.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_name_conflict_exits_non_zero(self, capsys):
        container, mongo = make_container(MagicMock())
        error = NameConflict("mandate_audits", "idx_audit_mandateId", "different keys")

        with patch.object(provision_main, "AppContainer", return_value=container), \
             patch.object(provision_main, "check_connection", new=AsyncMock()), \
             patch.object(provision_main, "ensure_mandate_indexes", new=AsyncMock(side_effect=error)):
            code = await provision_main.main()

        assert code == 1
        assert "Indexes created successfully" not in capsys.readouterr().out
        mongo.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_connection_error_skips_provisioning(self):
        container, mongo = make_container(MagicMock())
        ensure = AsyncMock()

        with patch.object(provision_main, "AppContainer", return_value=container), \
             patch.object(provision_main, "check_connection",
                          new=AsyncMock(side_effect=ProvisioningConnectionError("down"))), \
             patch.object(provision_main, "ensure_mandate_indexes", new=ensure):
            code = await provision_main.main()

        assert code == 1
        ensure.assert_not_called()

    @pytest.mark.asyncio
    async def test_check_mode_runs_report(self):
        container, _ = make_container(MagicMock())
        ensure = AsyncMock()

        with patch.object(provision_main, "AppContainer", return_value=container), \
             patch.object(provision_main, "check_connection", new=AsyncMock()), \
             patch.object(provision_main, "ensure_mandate_indexes", new=ensure), \
             patch.object(provision_main, "run_check", new=AsyncMock(return_value=0)) as run_check, \
             patch.object(provision_main.settings, "PROVISION_MODE", "check"):
            code = await provision_main.main()

        assert code == 0
        run_check.assert_awaited_once()
        ensure.assert_not_called()


class TestRunCheck:
    @pytest.mark.asyncio
    async def test_missing_index_fails_check(self):
        report = [
            {"collection": "mandates", "name": "idx_mandate_lookup", "status": "missing", "detail": None},
        ]
        verify = AsyncMock()

        with patch.object(provision_main, "inspect_mandate_indexes", new=AsyncMock(return_value=report)), \
             patch.object(provision_main, "verify_audit_history_plan", new=verify):
            code = await provision_main.run_check(MagicMock(), [])

        assert code == 1
        verify.assert_not_called()

    @pytest.mark.asyncio
    async def test_all_present_verifies_plan(self):
        report = [
            {"collection": "mandate_audits", "name": "idx_audit_mandate_time", "status": "present", "detail": None},
        ]
        verify = AsyncMock(return_value=True)

        with patch.object(provision_main, "inspect_mandate_indexes", new=AsyncMock(return_value=report)), \
             patch.object(provision_main, "verify_audit_history_plan", new=verify):
            code = await provision_main.run_check(MagicMock(), [])

        assert code == 0
        assert verify.call_args[0][1] == "idx_audit_mandate_time"

    @pytest.mark.asyncio
    async def test_plan_explain_failure_raises_index_error(self):
        report = [
            {"collection": "mandate_audits", "name": "idx_audit_mandate_time", "status": "present", "detail": None},
        ]
        verify = AsyncMock(side_effect=AutoReconnect("connection reset"))

        with patch.object(provision_main, "inspect_mandate_indexes", new=AsyncMock(return_value=report)), \
             patch.object(provision_main, "verify_audit_history_plan", new=verify):
            with pytest.raises(ProvisioningConnectionError) as exc_info:
                await provision_main.run_check(MagicMock(), [])

        assert exc_info.value.index_name == "idx_audit_mandate_time"

    @pytest.mark.asyncio
    async def test_plan_explain_failure_exits_non_zero(self, caplog):
        container, mongo = make_container(MagicMock())
        report = [
            {"collection": "mandate_audits", "name": "idx_audit_mandate_time", "status": "present", "detail": None},
        ]
        verify = AsyncMock(side_effect=OperationFailure("explain not allowed", 2))

        with patch.object(provision_main, "AppContainer", return_value=container), \
             patch.object(provision_main, "check_connection", new=AsyncMock()), \
             patch.object(provision_main, "inspect_mandate_indexes", new=AsyncMock(return_value=report)), \
             patch.object(provision_main, "verify_audit_history_plan", new=verify), \
             patch.object(provision_main.settings, "PROVISION_MODE", "check"), \
             caplog.at_level(logging.ERROR):
            code = await provision_main.main()

        assert code == 1
        assert "idx_audit_mandate_time" in caplog.text
        mongo.close.assert_called_once()


class TestMainFailureReport:
    @pytest.mark.asyncio
    async def test_each_failure_logged_with_index_prefix(self, caplog, capsys):
        container, mongo = make_container(MagicMock())
        error = ProvisioningFailed([
            ConstraintViolation("mandates", "idx_mandate_lookup", []),
            NameConflict("mandate_audits", "idx_audit_timestamp", "different keys"),
            IndexOperationError("mandate_audits", "idx_audit_mandateId", "cannot create index"),
        ])

        with patch.object(provision_main, "AppContainer", return_value=container), \
             patch.object(provision_main, "check_connection", new=AsyncMock()), \
             patch.object(provision_main, "ensure_mandate_indexes", new=AsyncMock(side_effect=error)), \
             caplog.at_level(logging.ERROR):
            code = await provision_main.main()

        assert code == 1
        messages = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
        assert any(m.startswith("[mandates.idx_mandate_lookup] ") for m in messages)
        assert any(m.startswith("[mandate_audits.idx_audit_timestamp] ") for m in messages)
        assert any(m.startswith("[mandate_audits.idx_audit_mandateId] ") for m in messages)
        assert "Indexes created successfully" not in capsys.readouterr().out
        mongo.close.assert_called_once()

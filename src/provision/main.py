import asyncio
import sys

from pymongo.errors import ConnectionFailure, OperationFailure

from core.config.settings import settings
from core.containers.app_containers import AppContainer
from core.logging.logger import configure_logging, get_logger
from provision.mandates.errors import (
    IndexOperationError,
    IndexProvisionError,
    ProvisioningConnectionError,
    ProvisioningFailed,
)
from provision.mandates.index_specs import build_index_specs
from provision.mandates.mandate_indexes import (
    check_connection,
    ensure_mandate_indexes,
    inspect_mandate_indexes,
)
from provision.mandates.query_plan import verify_audit_history_plan

logger = get_logger(__name__)

AUDIT_HISTORY_INDEX = "idx_audit_mandate_time"


def where(error: IndexProvisionError) -> str:
    if error.collection and error.index_name:
        return f"[{error.collection}.{error.index_name}] "
    if error.collection:
        return f"[{error.collection}] "
    return ""


async def run_check(db, specs) -> int:
    """인덱스 상태 리포트 (check 모드)"""
    report = await inspect_mandate_indexes(db, specs)

    logger.info("=" * 60)
    logger.info("📊 Mandate Index Report")
    logger.info("=" * 60)
    for item in report:
        line = f"{item['collection']}.{item['name']}: {item['status']}"
        if item["detail"]:
            logger.error(f"{line} ({item['detail']})")
        else:
            logger.info(line)

    all_present = all(item["status"] == "present" for item in report)
    if all_present:
        audit_col = db[settings.MANDATE_AUDIT_COLLECTION]
        try:
            served = await verify_audit_history_plan(audit_col, AUDIT_HISTORY_INDEX)
        except ConnectionFailure as e:
            raise ProvisioningConnectionError(
                f"Lost connection while explaining audit history query: {e}",
                collection=settings.MANDATE_AUDIT_COLLECTION,
                index_name=AUDIT_HISTORY_INDEX,
            ) from e
        except OperationFailure as e:
            raise IndexOperationError(
                settings.MANDATE_AUDIT_COLLECTION, AUDIT_HISTORY_INDEX, f"explain failed: {e}"
            ) from e

        if served:
            logger.info(f"Audit history query served by {AUDIT_HISTORY_INDEX}")
        else:
            logger.warning(f"Audit history query is NOT served by {AUDIT_HISTORY_INDEX}")
    logger.info("=" * 60)

    return 0 if all_present else 1


async def main() -> int:
    configure_logging(settings.LOG_LEVEL)

    container = AppContainer()
    mongo = container.mongo_client()
    db = mongo[settings.MONGO_DB_NAME]

    specs = build_index_specs(
        mandate_collection=settings.MANDATE_COLLECTION,
        audit_collection=settings.MANDATE_AUDIT_COLLECTION,
    )

    try:
        await check_connection(db)
        logger.info(f"MongoDB connected (db={settings.MONGO_DB_NAME})")

        if settings.PROVISION_MODE == "check":
            return await run_check(db, specs)

        logger.info("🔧 Ensuring indexes...")
        outcomes = await ensure_mandate_indexes(db, specs)
    except ProvisioningFailed as e:
        for failure in e.failures:
            logger.error(f"{where(failure)}{failure}")
        return 1
    except IndexProvisionError as e:
        logger.error(f"{where(e)}{e}")
        return 1
    finally:
        mongo.close()

    created = sum(1 for o in outcomes if o["status"] == "created")
    logger.info(f"Indexes ready: {created} created, {len(outcomes) - created} already present")
    print("Indexes created successfully")
    return 0


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()

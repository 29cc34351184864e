from typing import Literal

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, DuplicateKeyError, OperationFailure

from core.logging.logger import get_logger
from provision.mandates.duplicates import find_duplicate_keys
from provision.mandates.errors import (
    ConstraintViolation,
    IndexOperationError,
    IndexProvisionError,
    NameConflict,
    ProvisioningConnectionError,
    ProvisioningFailed,
)
from provision.mandates.index_specs import IndexSpec, normalize_key

logger = get_logger(__name__)

IndexStatus = Literal["created", "exists"]
InspectStatus = Literal["present", "missing", "conflict"]

# Unauthorized, AuthenticationFailed
AUTH_ERROR_CODES = {13, 18}
# IndexOptionsConflict, IndexKeySpecsConflict
INDEX_CONFLICT_CODES = {85, 86}


async def check_connection(db: AsyncIOMotorDatabase):
    try:
        await db.command("ping")
    except ConnectionFailure as e:
        raise ProvisioningConnectionError(f"MongoDB unreachable: {e}") from e
    except OperationFailure as e:
        if e.code in AUTH_ERROR_CODES:
            raise ProvisioningConnectionError(f"MongoDB rejected credentials: {e}") from e
        raise


def find_conflict(spec: IndexSpec, existing: dict) -> str | None:
    """
    기존 인덱스와의 충돌 내용 반환 (충돌 없으면 None)

    - 같은 이름, 다른 정의
    - 같은 key pattern이 다른 이름으로 존재
    """
    current = existing.get(spec.name)
    if current is not None:
        if spec.matches(current):
            return None
        return (
            f"existing definition {dict(current)} differs from expected "
            f"{spec.definition()}"
        )

    wanted = normalize_key(spec.keys)
    for name, info in existing.items():
        if normalize_key(info.get("key", [])) == wanted:
            return f"key pattern already indexed under name '{name}'"
    return None


async def duplicate_report(col: AsyncIOMotorCollection, spec: IndexSpec) -> list[dict]:
    """중복 key 리포트 (리포트 실패가 ConstraintViolation을 가리지 않도록)"""
    try:
        return await find_duplicate_keys(col, spec.key_fields)
    except ConnectionFailure as e:
        raise ProvisioningConnectionError(
            f"Lost connection while reporting duplicates for {spec.describe()}: {e}",
            collection=spec.collection,
            index_name=spec.name,
        ) from e
    except OperationFailure as e:
        logger.warning(f"Duplicate key report failed for {spec.describe()}: {e}")
        return []


async def ensure_index(col: AsyncIOMotorCollection, spec: IndexSpec) -> IndexStatus:
    """단일 인덱스를 정의대로 보장 (없으면 생성, 같으면 skip, 다르면 에러)"""
    try:
        existing = await col.index_information()

        if spec.name in existing and spec.matches(existing[spec.name]):
            logger.info(f"Index already present: {spec.describe()}")
            return "exists"

        conflict = find_conflict(spec, existing)
        if conflict:
            raise NameConflict(spec.collection, spec.name, conflict)

        await col.create_index(list(spec.keys), name=spec.name, **spec.options)

    except DuplicateKeyError as e:
        duplicates = await duplicate_report(col, spec)
        raise ConstraintViolation(spec.collection, spec.name, duplicates) from e
    except ConnectionFailure as e:
        raise ProvisioningConnectionError(
            f"Lost connection while ensuring {spec.describe()}: {e}",
            collection=spec.collection,
            index_name=spec.name,
        ) from e
    except OperationFailure as e:
        if e.code in INDEX_CONFLICT_CODES:
            raise NameConflict(spec.collection, spec.name, str(e)) from e
        if e.code in AUTH_ERROR_CODES:
            raise ProvisioningConnectionError(
                f"Not authorized to create {spec.describe()}: {e}",
                collection=spec.collection,
                index_name=spec.name,
            ) from e
        raise IndexOperationError(spec.collection, spec.name, str(e)) from e

    logger.info(f"Created index: {spec.describe()}")
    return "created"


async def ensure_mandate_indexes(db: AsyncIOMotorDatabase, specs: list[IndexSpec]) -> list[dict]:
    """
    mandate / audit 컬렉션 인덱스 보장

    각 인덱스는 독립적으로 처리된다. 충돌, 중복 데이터, 기타 서버 오류로 실패한 인덱스는
    기록만 하고 나머지를 계속 진행하며, 연결 오류는 즉시 중단한다.
    """
    outcomes = []
    failures: list[IndexProvisionError] = []

    for spec in specs:
        try:
            status = await ensure_index(db[spec.collection], spec)
        except ProvisioningConnectionError:
            raise
        except IndexProvisionError as e:
            logger.error(f"Failed to ensure {spec.describe()}: {e}")
            failures.append(e)
            continue

        outcomes.append({"collection": spec.collection, "name": spec.name, "status": status})

    if len(failures) == 1:
        raise failures[0]
    if failures:
        raise ProvisioningFailed(failures)

    return outcomes


async def inspect_mandate_indexes(db: AsyncIOMotorDatabase, specs: list[IndexSpec]) -> list[dict]:
    """인덱스 상태 조회만 수행 (쓰기 없음)"""
    report = []
    cache: dict[str, dict] = {}

    for spec in specs:
        if spec.collection not in cache:
            try:
                cache[spec.collection] = await db[spec.collection].index_information()
            except ConnectionFailure as e:
                raise ProvisioningConnectionError(
                    f"MongoDB unreachable: {e}", collection=spec.collection
                ) from e
            except OperationFailure as e:
                raise IndexOperationError(spec.collection, spec.name, str(e)) from e
        existing = cache[spec.collection]

        conflict = find_conflict(spec, existing)
        if conflict:
            status: InspectStatus = "conflict"
        elif spec.name in existing:
            status = "present"
        else:
            status = "missing"

        report.append({
            "collection": spec.collection,
            "name": spec.name,
            "status": status,
            "detail": conflict,
        })

    return report

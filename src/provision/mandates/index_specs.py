from dataclasses import dataclass, field
from typing import Any

# 인덱스 정의에 영향을 주는 옵션들 (name, v, ns 등은 비교 대상 아님)
DEFINITION_OPTIONS = (
    "unique",
    "sparse",
    "partialFilterExpression",
    "expireAfterSeconds",
    "collation",
)


def normalize_key(key) -> tuple:
    """
    index_information()의 key를 비교 가능한 형태로 변환

    mongo shell로 만든 인덱스는 방향이 1.0 / -1.0 (double)로 저장된다.
    """
    normalized = []
    for field_name, direction in key:
        if isinstance(direction, (int, float)) and not isinstance(direction, bool):
            direction = int(direction)
        normalized.append((field_name, direction))
    return tuple(normalized)


def index_definition(key, options: dict) -> dict[str, Any]:
    # unique=False 같은 기본값은 옵션이 없는 것과 동일
    definition = {"key": normalize_key(key)}
    for opt in DEFINITION_OPTIONS:
        value = options.get(opt)
        if value is not None and value is not False:
            definition[opt] = value
    return definition


@dataclass(frozen=True)
class IndexSpec:
    collection: str
    name: str
    keys: tuple
    options: dict[str, Any] = field(default_factory=dict)

    @property
    def key_fields(self) -> list[str]:
        return [field_name for field_name, _ in self.keys]

    @property
    def unique(self) -> bool:
        return bool(self.options.get("unique", False))

    def definition(self) -> dict[str, Any]:
        return index_definition(self.keys, self.options)

    def matches(self, info: dict) -> bool:
        """기존 인덱스 메타데이터가 이 정의와 동일한지"""
        return index_definition(info.get("key", []), info) == self.definition()

    def describe(self) -> str:
        keys = ", ".join(f"{f}:{d}" for f, d in self.keys)
        suffix = " unique" if self.unique else ""
        return f"{self.collection}.{self.name} {{{keys}}}{suffix}"


def build_index_specs(
    mandate_collection: str = "mandates",
    audit_collection: str = "mandate_audits",
) -> list[IndexSpec]:
    return [
        # batch lookup: mandateId + lastUpdateDate 중복 write 방지
        IndexSpec(
            collection=mandate_collection,
            name="idx_mandate_lookup",
            keys=(("mandateId", 1), ("lastUpdateDate", 1)),
            options={"unique": True},
        ),
        # mandate별 audit 조회
        IndexSpec(
            collection=audit_collection,
            name="idx_audit_mandateId",
            keys=(("mandateId", 1),),
        ),
        # 시간순 audit 조회
        IndexSpec(
            collection=audit_collection,
            name="idx_audit_timestamp",
            keys=(("changeTimestamp", -1),),
        ),
        # mandate별 최신 변경 이력
        IndexSpec(
            collection=audit_collection,
            name="idx_audit_mandate_time",
            keys=(("mandateId", 1), ("changeTimestamp", -1)),
        ),
    ]

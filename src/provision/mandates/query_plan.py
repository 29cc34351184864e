from motor.motor_asyncio import AsyncIOMotorCollection


def collect_index_names(stage: dict) -> list[str]:
    """winning plan 트리에서 IXSCAN이 사용한 인덱스 이름 수집"""
    names = []
    if not isinstance(stage, dict):
        return names

    if "indexName" in stage:
        names.append(stage["indexName"])

    # 신규 서버(SBE)는 winningPlan.queryPlan 아래에 트리가 있음
    for key in ("queryPlan", "inputStage"):
        if key in stage:
            names.extend(collect_index_names(stage[key]))
    for child in stage.get("inputStages", []):
        names.extend(collect_index_names(child))

    return names


async def explain_audit_history(col: AsyncIOMotorCollection, mandate_id: str) -> list[str]:
    """mandate별 최신순 audit 조회가 어떤 인덱스를 타는지"""
    cursor = col.find({"mandateId": mandate_id}).sort("changeTimestamp", -1)
    plan = await cursor.explain()
    winning = plan.get("queryPlanner", {}).get("winningPlan", {})
    return collect_index_names(winning)


async def verify_audit_history_plan(
    col: AsyncIOMotorCollection,
    expected_index: str = "idx_audit_mandate_time",
    mandate_id: str = "__plan_probe__",
) -> bool:
    return expected_index in await explain_audit_history(col, mandate_id)

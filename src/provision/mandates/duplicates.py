from motor.motor_asyncio import AsyncIOMotorCollection


async def find_duplicate_keys(
    col: AsyncIOMotorCollection,
    fields: list[str],
    limit: int = 10,
) -> list[dict]:
    """
    unique 인덱스를 막고 있는 중복 key 조합 조회

    Returns:
        [{"key": {"mandateId": ..., "lastUpdateDate": ...}, "count": 2}, ...]
    """
    pipeline = [
        {"$group": {"_id": {f: f"${f}" for f in fields}, "count": {"$sum": 1}}},
        {"$match": {"count": {"$gt": 1}}},
        {"$sort": {"count": -1}},
        {"$limit": limit},
    ]

    duplicates = []
    async for doc in col.aggregate(pipeline, allowDiskUse=True):
        duplicates.append({"key": doc["_id"], "count": doc["count"]})
    return duplicates

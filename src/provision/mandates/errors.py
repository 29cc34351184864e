class IndexProvisionError(Exception):
    """Base class for index provisioning failures."""

    def __init__(self, message: str, collection: str | None = None, index_name: str | None = None):
        super().__init__(message)
        self.collection = collection
        self.index_name = index_name


class ProvisioningConnectionError(IndexProvisionError, ConnectionError):
    """Database unreachable or credentials rejected. Aborts the whole run."""


class ConstraintViolation(IndexProvisionError):
    """Unique index build rejected because existing documents collide."""

    def __init__(self, collection: str, index_name: str, duplicates: list[dict]):
        sample = "; ".join(f"{d['key']} x{d['count']}" for d in duplicates) or "unknown"
        super().__init__(
            f"Cannot build unique index {collection}.{index_name}: "
            f"duplicate keys present ({sample})",
            collection=collection,
            index_name=index_name,
        )
        self.duplicates = duplicates


class NameConflict(IndexProvisionError):
    """An index exists under the expected name (or key pattern) with a different definition."""

    def __init__(self, collection: str, index_name: str, detail: str):
        super().__init__(
            f"Index conflict on {collection}.{index_name}: {detail}",
            collection=collection,
            index_name=index_name,
        )
        self.detail = detail


class ProvisioningFailed(IndexProvisionError):
    """More than one index could not be provisioned."""

    def __init__(self, failures: list[IndexProvisionError]):
        names = ", ".join(f"{f.collection}.{f.index_name}" for f in failures)
        super().__init__(f"{len(failures)} indexes failed: {names}")
        self.failures = failures


class IndexOperationError(IndexProvisionError):
    """Server rejected an index operation for a reason not covered above."""

    def __init__(self, collection: str, index_name: str, detail: str):
        super().__init__(
            f"Index operation failed on {collection}.{index_name}: {detail}",
            collection=collection,
            index_name=index_name,
        )
        self.detail = detail

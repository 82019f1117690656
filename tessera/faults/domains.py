"""
Tessera Faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults
- MODEL faults (records, collections, casting, schema)
- IO faults (database transport)
"""

from typing import Any, Optional
from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigFault(Fault):
    """Base class for configuration faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.FATAL,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CONFIG,
            severity=severity,
            retryable=False,
            metadata=metadata,
        )


class ConfigInvalidFault(ConfigFault):
    """Configuration value is invalid."""

    def __init__(self, key: str, reason: str, **kwargs):
        super().__init__(
            code="CONFIG_INVALID",
            message=f"Configuration key '{key}' is invalid: {reason}",
            metadata={"key": key, "reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# MODEL Faults (records, collections, schema)
# ============================================================================

class ModelFault(Fault):
    """Base class for record and schema faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.ERROR,
        retryable: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.MODEL,
            severity=severity,
            retryable=retryable,
            metadata=metadata,
        )


class UsageFault(ModelFault):
    """An API was called with arguments it cannot accept."""

    def __init__(self, operation: str, reason: str, *, code: str = "INVALID_USAGE", **kwargs):
        super().__init__(
            code=code,
            message=f"Invalid use of {operation}: {reason}",
            metadata={"operation": operation, "reason": reason, **kwargs.get("metadata", {})},
        )


class FillFault(UsageFault):
    """fill() received something other than a name-keyed mapping."""

    def __init__(self, model: str, received: Any, **kwargs):
        super().__init__(
            operation=f"{model}.fill",
            reason=(
                "expected a mapping of attribute names to values, "
                f"got {type(received).__name__}"
            ),
            code="INVALID_FILL",
            metadata={"model": model, **kwargs.get("metadata", {})},
        )


class CollectionTypeFault(UsageFault, TypeError):
    """A record of the wrong type was added to a Collection."""

    def __init__(self, operation: str, expected: str, received: str, **kwargs):
        super().__init__(
            operation=f"Collection.{operation}",
            reason=f"expected {expected} records, got {received}",
            code="COLLECTION_TYPE_MISMATCH",
            metadata={"expected": expected, "received": received, **kwargs.get("metadata", {})},
        )


class RecordNotFoundFault(ModelFault):
    """A query that must produce a record produced none."""

    def __init__(self, model: str, ids: Any = None, **kwargs):
        if ids is None:
            message = f"No {model} record matched the query"
        elif isinstance(ids, (list, tuple, set)):
            message = f"{model} records with ids {', '.join(str(i) for i in ids)} not found"
        else:
            message = f"{model} record with id {ids} not found"
        super().__init__(
            code="RECORD_NOT_FOUND",
            message=message,
            metadata={"model": model, "ids": ids, **kwargs.get("metadata", {})},
        )


class MissingIdentifierFault(ModelFault):
    """An operation that needs a persisted record got one without an id."""

    def __init__(self, model: str, operation: str, **kwargs):
        super().__init__(
            code="MISSING_IDENTIFIER",
            message=f"Cannot {operation} {model}: the record has no 'id' attribute",
            metadata={"model": model, "operation": operation, **kwargs.get("metadata", {})},
        )


class AttributeFault(ModelFault):
    """A named attribute does not exist on the record snapshot."""

    def __init__(self, model: str, attribute: str, reason: str, **kwargs):
        super().__init__(
            code="UNKNOWN_ATTRIBUTE",
            message=f"Attribute '{attribute}' on {model}: {reason}",
            metadata={"model": model, "attribute": attribute, **kwargs.get("metadata", {})},
        )


class CastFault(ModelFault, ValueError):
    """A stored value cannot be converted to its column's declared type."""

    def __init__(self, column: str, value: Any, expected: str, **kwargs):
        super().__init__(
            code="CAST_FAILED",
            message=f"Cannot cast {value!r} for column '{column}' to {expected}",
            metadata={
                "column": column,
                "value": value,
                "expected": expected,
                **kwargs.get("metadata", {}),
            },
        )


class ModelNotFoundFault(ModelFault):
    """Record type not found in registry."""

    def __init__(self, model_name: str, **kwargs):
        super().__init__(
            code="MODEL_NOT_FOUND",
            message=f"Model '{model_name}' not found in ModelRegistry",
            metadata={"model": model_name, **kwargs.get("metadata", {})},
        )


class SchemaFault(ModelFault):
    """Schema lookup or creation failed."""

    def __init__(self, table: str, reason: str, **kwargs):
        super().__init__(
            code="SCHEMA_FAULT",
            message=f"Schema error for table '{table}': {reason}",
            severity=Severity.FATAL,
            metadata={"table": table, "reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# IO Faults (database transport)
# ============================================================================

class QueryFault(Fault):
    """Query execution failed."""

    def __init__(self, model: str, operation: str, reason: str, **kwargs):
        super().__init__(
            code="QUERY_FAILED",
            message=f"Query on '{model}' ({operation}) failed: {reason}",
            domain=FaultDomain.IO,
            severity=Severity.ERROR,
            retryable=True,
            metadata={"model": model, "operation": operation, "reason": reason, **kwargs.get("metadata", {})},
        )


class DatabaseConnectionFault(Fault):
    """Database connection failed."""

    def __init__(self, url: str, reason: str, **kwargs):
        super().__init__(
            code="DB_CONNECTION_FAILED",
            message=f"Database connection failed ({url}): {reason}",
            domain=FaultDomain.IO,
            severity=Severity.FATAL,
            retryable=True,
            metadata={"url": url, "reason": reason, **kwargs.get("metadata", {})},
        )

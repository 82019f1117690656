"""
Tests for the fault taxonomy.
"""

import pytest

from tessera.faults import (
    AttributeFault,
    CastFault,
    CollectionTypeFault,
    ConfigInvalidFault,
    DatabaseConnectionFault,
    Fault,
    FaultDomain,
    FillFault,
    MissingIdentifierFault,
    ModelFault,
    ModelNotFoundFault,
    QueryFault,
    RecordNotFoundFault,
    SchemaFault,
    Severity,
    UsageFault,
)


class TestFaultTaxonomy:
    """Test codes, domains and exception bases."""

    def test_model_faults(self):
        cases = [
            (FillFault(model="Post", received=[1]), "INVALID_FILL"),
            (CollectionTypeFault(operation="push", expected="Post", received="Tag"), "COLLECTION_TYPE_MISMATCH"),
            (UsageFault(operation="where", reason="bad"), "INVALID_USAGE"),
            (RecordNotFoundFault(model="Post", ids=3), "RECORD_NOT_FOUND"),
            (MissingIdentifierFault(model="Post", operation="delete"), "MISSING_IDENTIFIER"),
            (AttributeFault(model="Post", attribute="x", reason="unknown"), "UNKNOWN_ATTRIBUTE"),
            (CastFault(column="views", value="x", expected="int"), "CAST_FAILED"),
            (ModelNotFoundFault(model_name="Ghost"), "MODEL_NOT_FOUND"),
            (SchemaFault(table="t", reason="unknown"), "SCHEMA_FAULT"),
        ]
        for fault, code in cases:
            assert isinstance(fault, ModelFault)
            assert fault.code == code
            assert fault.domain == FaultDomain.MODEL
            assert fault.retryable is False

    def test_usage_subtypes(self):
        assert isinstance(FillFault(model="Post", received=1), UsageFault)
        assert isinstance(CollectionTypeFault(operation="push", expected="A", received="B"), TypeError)
        assert isinstance(CastFault(column="c", value=1, expected="str"), ValueError)

    def test_io_faults(self):
        query = QueryFault(model="Post", operation="fetch_all", reason="boom")
        connection = DatabaseConnectionFault(url="sqlite://", reason="down")
        assert query.code == "QUERY_FAILED"
        assert connection.code == "DB_CONNECTION_FAILED"
        assert query.domain == FaultDomain.IO
        assert connection.retryable is True

    def test_config_fault(self):
        fault = ConfigInvalidFault(key="database.url", reason="empty")
        assert fault.domain == FaultDomain.CONFIG
        assert fault.severity == Severity.FATAL

    def test_str_and_to_dict(self):
        fault = RecordNotFoundFault(model="Post", ids=3)
        assert str(fault).startswith("[RECORD_NOT_FOUND]")
        data = fault.to_dict()
        assert data["code"] == "RECORD_NOT_FOUND"
        assert data["domain"] == "model"

    def test_base_fault_requires_fields(self):
        with pytest.raises(TypeError):
            Fault()

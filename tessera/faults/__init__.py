"""
Tessera Faults - typed fault signals for the data-access core.

Errors in Tessera are structured values: every fault carries a stable code,
a domain, a severity and metadata describing the failing operation.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain enumeration
- Severity: Severity levels
- Model, IO and config fault types
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
)

from .domains import (
    ConfigFault,
    ConfigInvalidFault,
    ModelFault,
    UsageFault,
    FillFault,
    CollectionTypeFault,
    RecordNotFoundFault,
    MissingIdentifierFault,
    AttributeFault,
    CastFault,
    ModelNotFoundFault,
    SchemaFault,
    QueryFault,
    DatabaseConnectionFault,
)

__all__ = [
    # Core types
    "Fault",
    "FaultDomain",
    "Severity",

    # Config
    "ConfigFault",
    "ConfigInvalidFault",

    # Model
    "ModelFault",
    "UsageFault",
    "FillFault",
    "CollectionTypeFault",
    "RecordNotFoundFault",
    "MissingIdentifierFault",
    "AttributeFault",
    "CastFault",
    "ModelNotFoundFault",
    "SchemaFault",

    # IO
    "QueryFault",
    "DatabaseConnectionFault",
]

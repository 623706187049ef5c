"""
Json log format carrying the identity of the object being reconciled
"""

# First Party
from alog import AlogJsonFormatter


class IstioCSRJsonFormatter(AlogJsonFormatter):
    """Extends the alog json formatter with thread information and the
    identifiers of the object passed as the "resource" extra on a log call
    """

    _FIELDS_TO_PRINT = AlogJsonFormatter._FIELDS_TO_PRINT + [
        "thread",
        "threadName",
        "kind",
        "resourceName",
        "resourceNamespace",
    ]

    def format(self, record):
        resource = getattr(record, "resource", None)
        if resource is not None:
            metadata = resource.get("metadata", {})
            record.kind = resource.get("kind")
            record.resourceName = metadata.get("name")
            record.resourceNamespace = metadata.get("namespace")

        return super().format(record)

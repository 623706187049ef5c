"""
Lightweight view of a kubernetes object observed by the operator
"""

# Standard
from typing import Optional


class ManagedObject:
    """Read-only accessors over the dict representation of an object"""

    def __init__(self, definition: dict):
        self.definition = definition or {}
        self.kind = self.definition.get("kind")
        self.api_version = self.definition.get("apiVersion")
        self.metadata = self.definition.get("metadata") or {}
        self.name = self.metadata.get("name")
        self.namespace = self.metadata.get("namespace")
        self.resource_version = self.metadata.get("resourceVersion")
        self.generation = self.metadata.get("generation")

        assert self.kind is not None, "No kind found"
        assert self.name is not None, "No name found"

    @property
    def labels(self) -> dict:
        return self.metadata.get("labels") or {}

    @property
    def uid(self) -> Optional[str]:
        return self.metadata.get("uid")

    def get(self, *args, **kwargs):
        """Pass get calls to the object's definition"""
        return self.definition.get(*args, **kwargs)

    def __str__(self):
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"

    def __repr__(self):
        return str(self)

    def __hash__(self):
        """Objects are identified by their cluster uid when they have one so
        that the same object hashes equally across observed versions
        """
        return hash(self.uid or (self.api_version, str(self)))

    def __eq__(self, other):
        return isinstance(other, ManagedObject) and hash(self) == hash(other)

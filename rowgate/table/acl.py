from __future__ import annotations

from rowgate.models.schema import Field, Schema

from .table import Table

"""ACL rule rows (#__acl). ``rules`` is a JSON encoded rule set."""


class AclTable(Table):
    schema = Schema(
        table="#__acl",
        fields=(
            Field("id", primary_key=True),
            Field("parent_id"),
            Field("resource"),
            Field("rules", serialized=True),
        ),
    )

    def load_by_resource(self, resource: str) -> bool:
        """Load the ACL rules attached to a resource name."""
        return self.load({"resource": resource})

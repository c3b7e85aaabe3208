from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# =====================
# Metadata
# =====================


class KeyRole(str, Enum):
    NONE = "none"
    PRIMARY = "primary"


@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    declared_type: str
    nullable: bool
    default_value: Optional[Any] = None
    is_auto_increment: bool = False
    key_role: KeyRole = KeyRole.NONE
    extra: str = ""

    # Only set when the column carries an outgoing foreign key
    is_foreign_key: bool = False
    referenced_table: Optional[str] = None
    referenced_column: Optional[str] = None

    @property
    def is_primary(self) -> bool:
        return self.key_role is KeyRole.PRIMARY


@dataclass(frozen=True)
class ForeignKeyRef:
    """Outgoing foreign key: `column` of the inspected table points elsewhere."""

    column: str
    referenced_table: str
    referenced_column: str


@dataclass(frozen=True)
class ConstraintRef:
    """Incoming foreign key: another table's column points at the inspected table."""

    referencing_table: str
    referencing_column: str
    referenced_table: str
    referenced_column: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "referencingTable": self.referencing_table,
            "referencingColumn": self.referencing_column,
            "referencedTable": self.referenced_table,
            "referencedColumn": self.referenced_column,
        }


@dataclass(frozen=True)
class ReferencingColumn:
    column: str
    referenced_column: str


@dataclass(frozen=True)
class TableSchema:
    table: str
    columns: List[ColumnDescriptor]
    primary_key_column: Optional[str]
    referencing_tables: Dict[str, List[ReferencingColumn]] = field(default_factory=dict)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def column(self, name: str) -> Optional[ColumnDescriptor]:
        for c in self.columns:
            if c.name == name:
                return c
        return None


# =====================
# Mutations
# =====================


@dataclass(frozen=True)
class RelatedRecord:
    """A row inserted alongside a primary record, inside the same transaction."""

    table: str
    data: Dict[str, Any]
    link_field: Optional[str] = None
    link_to_field: Optional[str] = None


@dataclass(frozen=True)
class RelatedInsert:
    table: str
    id: Optional[int]
    success: bool = True


@dataclass(frozen=True)
class InsertResult:
    id: Optional[int]
    related_records: List[RelatedInsert] = field(default_factory=list)


@dataclass(frozen=True)
class MutationResult:
    table: str
    affected_rows: int
    forced: bool = False


# =====================
# DDL builder input
# =====================


@dataclass
class ColumnBuilderSpec:
    name: str
    type: str
    primary_key: bool = False
    auto_increment: bool = False
    not_null: bool = False
    foreign_key: bool = False
    referenced_table: Optional[str] = None
    referenced_column: Optional[str] = None


# =====================
# Reads
# =====================


@dataclass(frozen=True)
class Page:
    rows: List[Dict[str, Any]]
    total: int
    page: int
    limit: int
    total_pages: int


@dataclass(frozen=True)
class ReferencedData:
    referenced_table: str
    referenced_column: str
    rows: List[Dict[str, Any]]

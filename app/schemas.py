import base64
from typing import List, Optional, Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from dbadmin.types import ColumnBuilderSpec, RelatedRecord


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case is accepted on input too."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


def _cell(value: Any) -> Any:
    # BINARY, VARBINARY and BLOB cells arrive as raw bytes.
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return value


def jsonable_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{k: _cell(v) for k, v in row.items()} for row in rows]


# =====================
# Requests
# =====================


class CreateDatabaseRequest(CamelModel):
    database_name: Optional[str] = None


class UseDatabaseRequest(CamelModel):
    database: Optional[str] = None


class QueryRequest(CamelModel):
    query: Optional[str] = None


class ColumnSpecModel(CamelModel):
    name: str = ""
    type: str = ""
    primary_key: bool = False
    auto_increment: bool = False
    not_null: bool = False
    foreign_key: bool = False
    referenced_table: Optional[str] = None
    referenced_column: Optional[str] = None

    def to_spec(self) -> ColumnBuilderSpec:
        return ColumnBuilderSpec(
            name=self.name,
            type=self.type,
            primary_key=self.primary_key,
            auto_increment=self.auto_increment,
            not_null=self.not_null,
            foreign_key=self.foreign_key,
            referenced_table=self.referenced_table or None,
            referenced_column=self.referenced_column or None,
        )


class CreateTableRequest(CamelModel):
    table_name: str = ""
    columns: List[ColumnSpecModel] = Field(default_factory=list)
    dry_run: bool = False


class RelatedRecordModel(CamelModel):
    table: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    link_field: Optional[str] = None
    link_to_field: Optional[str] = None

    def to_record(self) -> RelatedRecord:
        return RelatedRecord(
            table=self.table,
            data=dict(self.data),
            link_field=self.link_field,
            link_to_field=self.link_to_field,
        )


# =====================
# Responses
# =====================


class MessageResponse(CamelModel):
    message: str


class CreateTableResponse(CamelModel):
    message: str
    sql: str
    created: bool


class PaginationModel(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class PageResponse(CamelModel):
    data: List[Dict[str, Any]]
    pagination: PaginationModel

    @field_serializer("data")
    def serialize_rows(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return jsonable_rows(rows)


class ReferencedDataResponse(CamelModel):
    referenced_table: str
    referenced_column: str
    data: List[Dict[str, Any]]

    @field_serializer("data")
    def serialize_rows(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return jsonable_rows(rows)


class RelatedInsertModel(CamelModel):
    table: str
    id: Optional[int] = None
    success: bool = True


class InsertResponse(CamelModel):
    message: str = "Record created successfully"
    id: Optional[int] = None
    related_records: Optional[List[RelatedInsertModel]] = None


class MutationResponse(CamelModel):
    message: str
    affected_rows: int
    forced: bool = False


class QueryResponse(CamelModel):
    result: Any
    statement_type: str

    @field_serializer("result")
    def serialize_result(self, result: Any) -> Any:
        if isinstance(result, list):
            return jsonable_rows(result)
        return result

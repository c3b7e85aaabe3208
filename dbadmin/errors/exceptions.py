from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from dbadmin.errors.codes import ErrorCode
from dbadmin.types import ConstraintRef


@dataclass
class DbAdminError(Exception):
    """Base class for errors raised by the metadata/mutation core."""

    message: str
    details: Optional[Union[List[str], Dict[str, Any]]] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    code: ErrorCode = ErrorCode.ENGINE_ERROR

    def __str__(self) -> str:
        return self.message


# 4xx
@dataclass
class InvalidInputError(DbAdminError):
    code: ErrorCode = ErrorCode.INVALID_INPUT


@dataclass
class InvalidIdentifierError(InvalidInputError):
    code: ErrorCode = ErrorCode.INVALID_IDENTIFIER


@dataclass
class NotFoundError(DbAdminError):
    code: ErrorCode = ErrorCode.NOT_FOUND


@dataclass
class AlreadyExistsError(DbAdminError):
    code: ErrorCode = ErrorCode.ALREADY_EXISTS


@dataclass
class SchemaError(DbAdminError):
    code: ErrorCode = ErrorCode.SCHEMA_ERROR


@dataclass
class ConstraintConflictError(DbAdminError):
    """
    A mutation is blocked by foreign keys pointing at the target row.

    `constraints` is empty when the conflict was reported by the engine
    itself (forced path, or a non-key column change) rather than by the
    pre-check.
    """

    code: ErrorCode = ErrorCode.CONSTRAINT_CONFLICT
    constraints: List[ConstraintRef] = field(default_factory=list)
    solution: str = (
        "Update or delete the referencing records first, "
        "or retry with force=true to bypass foreign key checks (not recommended)."
    )

    def __post_init__(self) -> None:
        self.extra.setdefault("constraints", [c.to_dict() for c in self.constraints])
        self.extra.setdefault("solution", self.solution)
        if self.details is None:
            self.details = {
                "constraints": self.extra["constraints"],
                "solution": self.extra["solution"],
            }

    @property
    def referencing_tables(self) -> List[str]:
        seen: List[str] = []
        for c in self.constraints:
            if c.referencing_table not in seen:
                seen.append(c.referencing_table)
        return seen


# DDL builder
@dataclass
class MissingPrimaryKeyError(InvalidInputError):
    code: ErrorCode = ErrorCode.MISSING_PRIMARY_KEY


@dataclass
class IncompleteForeignKeyError(InvalidInputError):
    code: ErrorCode = ErrorCode.INCOMPLETE_FOREIGN_KEY


@dataclass
class TypeMismatchError(InvalidInputError):
    code: ErrorCode = ErrorCode.TYPE_MISMATCH


# 5xx-ish
@dataclass
class ConnectionFailureError(DbAdminError):
    code: ErrorCode = ErrorCode.CONNECTION_ERROR


@dataclass
class EngineError(DbAdminError):
    code: ErrorCode = ErrorCode.ENGINE_ERROR

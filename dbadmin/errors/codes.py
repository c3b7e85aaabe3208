from enum import Enum


class ErrorCode(str, Enum):
    # --- Request validation ---
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"

    # --- Catalog / lookup ---
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    SCHEMA_ERROR = "SCHEMA_ERROR"

    # --- Referential integrity ---
    CONSTRAINT_CONFLICT = "CONSTRAINT_CONFLICT"

    # --- DDL builder ---
    MISSING_PRIMARY_KEY = "MISSING_PRIMARY_KEY"
    INCOMPLETE_FOREIGN_KEY = "INCOMPLETE_FOREIGN_KEY"
    TYPE_MISMATCH = "TYPE_MISMATCH"

    # --- Engine / connectivity ---
    CONNECTION_ERROR = "CONNECTION_ERROR"
    ENGINE_ERROR = "ENGINE_ERROR"

from dbadmin.errors.codes import ErrorCode

ERROR_MAP = {
    ErrorCode.INVALID_INPUT: (400, False),
    ErrorCode.INVALID_IDENTIFIER: (400, False),
    ErrorCode.NOT_FOUND: (404, False),
    ErrorCode.ALREADY_EXISTS: (409, False),
    ErrorCode.SCHEMA_ERROR: (400, False),
    ErrorCode.CONSTRAINT_CONFLICT: (409, False),
    ErrorCode.MISSING_PRIMARY_KEY: (400, False),
    ErrorCode.INCOMPLETE_FOREIGN_KEY: (400, False),
    ErrorCode.TYPE_MISMATCH: (400, False),
    ErrorCode.CONNECTION_ERROR: (500, True),
    ErrorCode.ENGINE_ERROR: (500, False),
}


def map_error(code: ErrorCode | None) -> tuple[int, bool]:
    if code is None:
        return (500, False)
    return ERROR_MAP.get(code, (500, False))

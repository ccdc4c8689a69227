class PoolError(Exception):
    """
    Base exception for connection pool errors.
    """


class ConnectionNotWorkingError(PoolError):
    """
    A freshly created connection failed its liveness check.
    """


class ConnectionNotCheckedOutError(PoolError):
    """
    The connection is not currently checked out from this pool.

    Raised on double release, or when releasing a connection the pool
    never issued.
    """


class EndpointLockedError(PoolError):
    """
    The endpoint cannot change once the pool has created a connection.
    """

import contextlib
import logging
import threading

from db2Pool.db2 import Db2Connection
from db2Pool.exceptions import (
    ConnectionNotCheckedOutError,
    ConnectionNotWorkingError,
    EndpointLockedError,
)

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10


def check_connection_working(conn):
    """Default configurator: fail fast if a new connection is not usable."""
    if not conn.is_working():
        raise ConnectionNotWorkingError(f"[{conn!r}] connection is not working")


def _close_quietly(conn):
    """Close ``conn``; errors are logged and never propagated."""
    try:
        conn.close()
    except Exception as e:
        logger.warning(f"[POOL] failed to close connection {conn!r}: {e}")


class ConnectionPool:
    """Thread-safe pool of reusable :class:`Db2Connection` objects.

    Idle connections are kept on a LIFO stack so the most recently released
    (and most likely still alive) connection is reused first. ``capacity``
    bounds the number of idle connections retained; connections checked out
    by callers are not counted against it.
    """

    def __init__(self, endpoint, capacity: int = DEFAULT_CAPACITY,
                 connection_factory=None, configurator=check_connection_working,
                 exporter=None, name: str | None = None):
        """
        Create an empty pool for ``endpoint``.

        Parameters
        ----------
        endpoint:
            Connection target passed to ``connection_factory``.
        capacity:
            Maximum number of idle connections to keep.
        connection_factory:
            Callable ``factory(endpoint)`` returning a connected connection.
            Defaults to :meth:`Db2Connection.open`.
        configurator:
            Callable applied once to every newly created connection before
            it is handed out. ``None`` disables it.
        exporter:
            Optional :class:`PoolExporter` receiving pool occupancy gauges.
        name:
            Label used in logs and metrics. Defaults to ``str(endpoint)``.
        """
        if capacity < 0:
            raise ValueError(f"capacity must be non-negative, got {capacity}")
        self._endpoint = endpoint
        self._capacity = capacity
        self._factory = connection_factory or self._open_db2
        self._configurator = configurator
        self._exporter = exporter
        self.name = name or str(endpoint)

        self._lock = threading.Lock()
        self._idle = []
        # id -> connection; withheld connections stay here until discarded
        self._checked_out = {}
        self._created = False
        self._connecting = 0

    def _open_db2(self, endpoint):
        return Db2Connection.open(endpoint, exporter=self._exporter)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def endpoint(self):
        return self._endpoint

    @endpoint.setter
    def endpoint(self, endpoint):
        with self._lock:
            if self._created or self._connecting:
                raise EndpointLockedError(
                    f"[POOL] [{self.name}] endpoint cannot change after a connection was made")
            self._endpoint = endpoint

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        """Number of idle connections."""
        return len(self._idle)

    @property
    def checked_out(self) -> int:
        return len(self._checked_out)

    def set_configurator(self, configurator):
        """Replace the initializer applied to connections created from now on."""
        self._configurator = configurator

    def set_capacity(self, capacity: int):
        """
        Change the idle-connection bound.

        Idle connections above the new bound are closed straight away,
        least recently released first.
        """
        if capacity < 0:
            raise ValueError(f"capacity must be non-negative, got {capacity}")
        with self._lock:
            self._capacity = capacity
            excess = len(self._idle) - capacity
            evicted = self._idle[:excess] if excess > 0 else []
            del self._idle[:len(evicted)]
            self._report()
        for conn in evicted:
            _close_quietly(conn)
        logger.info(f"[POOL] [{self.name}] capacity set to {capacity}, evicted {len(evicted)}")

    def acquire(self):
        """
        Check out a connection, reusing the most recently released one.

        A new connection is created when none is idle. Creation and the
        configurator run outside the lock; if either fails the error
        propagates and the pool is left unchanged. The endpoint cannot be
        changed while a connection is being created.
        """
        with self._lock:
            if self._idle:
                conn = self._idle.pop()
                self._checked_out[id(conn)] = conn
                self._report()
                logger.debug(f"[POOL] [{self.name}] reused idle connection")
                return conn
            endpoint = self._endpoint
            self._connecting += 1

        try:
            conn = self._factory(endpoint)
            configurator = self._configurator
            if configurator is not None:
                try:
                    configurator(conn)
                except Exception as e:
                    logger.error(f"[POOL] [{self.name}] new connection rejected: {e}")
                    _close_quietly(conn)
                    raise

            with self._lock:
                self._created = True
                self._checked_out[id(conn)] = conn
                self._report()
        finally:
            with self._lock:
                self._connecting -= 1
        logger.debug(f"[POOL] [{self.name}] created new connection")
        return conn

    def _untrack(self, conn):
        # Caller holds the lock
        if self._checked_out.get(id(conn)) is not conn:
            raise ConnectionNotCheckedOutError(
                f"[POOL] [{self.name}] {conn!r} is not checked out from this pool")
        del self._checked_out[id(conn)]

    def release(self, conn):
        """
        Return a checked-out connection to the pool.

        The connection is kept idle while the pool is below capacity and
        closed otherwise. Releasing a connection that is not checked out
        from this pool raises :class:`ConnectionNotCheckedOutError`. The
        caller must not use ``conn`` afterwards.
        """
        with self._lock:
            self._untrack(conn)
            keep = len(self._idle) < self._capacity
            if keep:
                self._idle.append(conn)
            self._report()
        if not keep:
            logger.debug(f"[POOL] [{self.name}] at capacity, closing released connection")
            _close_quietly(conn)

    def discard(self, conn):
        """Close a checked-out connection instead of returning it."""
        with self._lock:
            self._untrack(conn)
            self._report()
        logger.info(f"[POOL] [{self.name}] discarding connection")
        _close_quietly(conn)

    @contextlib.contextmanager
    def connection(self):
        """
        Scope a checked-out connection to a ``with`` block.

        The connection is released when the block completes normally. If
        the block raises, the connection is withheld (still checked out)
        and the caller is responsible for discarding it.
        """
        conn = self.acquire()
        completed = False
        try:
            yield conn
            completed = True
        finally:
            if completed:
                self.release(conn)
            else:
                logger.warning(f"[POOL] [{self.name}] withholding connection after failure")

    def with_connection(self, action, *args, **kwargs):
        """Run ``action(conn, *args, **kwargs)`` on a pooled connection and return its result."""
        with self.connection() as conn:
            return action(conn, *args, **kwargs)

    def warm_up(self, n: int | None = None):
        """
        Create ``n`` connections up front (``capacity`` when omitted).

        All of them are released straight away; those above capacity are
        closed by the release.
        """
        if n is None:
            n = self._capacity
        if n < 0:
            raise ValueError(f"warm-up count must be non-negative, got {n}")
        acquired = []
        try:
            for _ in range(n):
                acquired.append(self.acquire())
        finally:
            for conn in acquired:
                self.release(conn)
        logger.info(f"[POOL] [{self.name}] warmed up, {self.size} idle")

    def close(self):
        """Close all idle connections. Checked-out connections are untouched."""
        with self._lock:
            idle, self._idle = self._idle, []
            self._report()
        for conn in idle:
            _close_quietly(conn)
        if idle:
            logger.info(f"[POOL] [{self.name}] closed {len(idle)} idle connections")

    def _report(self):
        # Called with the lock held so reports reach the exporter in order
        if self._exporter is not None:
            self._exporter.record_pool_state(
                self.name, self.size, self.checked_out, self._capacity)

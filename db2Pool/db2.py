import ibm_db
import logging

logger = logging.getLogger(__name__)

APPLICATION_NAME = "DB2POOL"

class Db2Connection:
    def __init__(self, endpoint, exporter=None):
        """
        Initialize a DB2 connection bound to ``endpoint``.

        The connection is not opened until :meth:`connect` is called; use
        :meth:`open` to construct and connect in one step.
        """
        self.endpoint = endpoint
        self.connection_string = endpoint.connection_string()
        self.connection_string_print = str(endpoint)
        self.conn = None
        self.exporter = exporter  # Optional exporter used to emit metrics
        # Store database details for metric labels
        self.db_name = endpoint.db_name
        self.db_host = endpoint.db_host

    @classmethod
    def open(cls, endpoint, exporter=None) -> "Db2Connection":
        """
        Create a connection to ``endpoint`` and establish it.
        """
        connection = cls(endpoint, exporter)
        connection.connect()
        return connection

    def _set_status(self, value: int):
        if self.exporter is not None:
            labels = {"dbhost": self.db_host, "dbname": self.db_name}
            self.exporter.set_gauge("db2_connection_status", value, labels)

    def connect(self):
        """
        Establish a connection to the DB2 database.
        """
        options = {
            ibm_db.SQL_ATTR_INFO_PROGRAMNAME: APPLICATION_NAME,
            ibm_db.SQL_ATTR_INFO_WRKSTNNAME: APPLICATION_NAME,
            ibm_db.SQL_ATTR_INFO_ACCTSTR: APPLICATION_NAME,
            ibm_db.SQL_ATTR_INFO_APPLNAME: APPLICATION_NAME
        }
        try:
            if not self.conn:
                # Plain connect: pooling is done by ConnectionPool, not the driver
                conn = ibm_db.connect(self.connection_string, "", "", options)
                logger.info(f"[{self.connection_string_print}] connected")
                self.conn = conn
                self._set_status(1)
        except Exception as e:
            logger.error(f"[{self.connection_string_print}] {e}")
            self.conn = None
            self._set_status(0)
            raise e

    def is_working(self) -> bool:
        """
        Return ``True`` if the underlying handle is open and active.
        """
        if not self.conn:
            return False
        try:
            return bool(ibm_db.active(self.conn))
        except Exception as e:
            logger.warning(f"[{self.connection_string_print}] liveness check failed: {e}")
            return False

    def execute(self, query: str, params: list | tuple | None = None, max_rows: int | None = None) -> list[list]:
        """
        Execute a SQL query and return the fetched rows.

        On failure the statement is freed, the handle is closed and the
        error is re-raised; the connection must not be reused.
        """
        if not self.conn:
            raise RuntimeError(f"[{self.connection_string_print}] not connected")

        rows: list[list] = []
        try:
            stmt = ibm_db.prepare(self.conn, query)
            try:
                if params is not None:
                    ibm_db.execute(stmt, tuple(params))
                else:
                    ibm_db.execute(stmt)
                row = ibm_db.fetch_tuple(stmt)
                while row:
                    rows.append(list(row))
                    if max_rows is not None and len(rows) >= max_rows:
                        break
                    row = ibm_db.fetch_tuple(stmt)
            finally:
                ibm_db.free_stmt(stmt)
        except Exception as e:
            logger.warning(f"[{self.connection_string_print}] failed to execute: {e}")
            self.close()
            raise

        logger.debug(f"[{self.connection_string_print}] executed, {len(rows)} rows")
        return rows

    def close(self):
        """
        Close the DB2 connection.
        """
        try:
            if self.conn:
                ibm_db.close(self.conn)
                logger.info(f"[{self.connection_string_print}] closed")
        except Exception as e:
            logger.error(f"[{self.connection_string_print}] failed to close connection: {e}")
        finally:
            self.conn = None

    def set_current_schema(self, schema: str):
        """
        Set the default schema for unqualified names on this connection.
        """
        if not self.conn:
            raise RuntimeError(f"[{self.connection_string_print}] not connected")
        ibm_db.exec_immediate(self.conn, 'SET CURRENT SCHEMA = "{}"'.format(schema.replace('"', '""')))
        logger.debug(f"[{self.connection_string_print}] current schema set to {schema}")

from prometheus_client import (
    start_http_server,
    Gauge,
    CollectorRegistry,
)
import logging
import socket

logger = logging.getLogger(__name__)

POOL_LABELS = ["pool"]


class PoolExporter:
    def __init__(self, port: int = 9844, host: str | None = None):
        """Initialize the Prometheus exporter for connection pools.

        Parameters
        ----------
        port : int
            Port where the exporter will expose metrics.
        host : str, optional
            Network interface to bind the HTTP server to. If not provided,
            the exporter will bind to the current machine's hostname.
        """
        self.metric_dict: dict[str, Gauge] = {}
        self.port = port
        self.host = host or socket.gethostname()
        # Use a dedicated registry so metrics from different exporter instances
        # do not conflict with each other.
        self.registry = CollectorRegistry()

        self.create_gauge(
            "db2pool_idle_connections",
            "Number of idle connections held by the pool",
            POOL_LABELS,
        )
        self.create_gauge(
            "db2pool_checked_out_connections",
            "Number of connections currently checked out from the pool",
            POOL_LABELS,
        )
        self.create_gauge(
            "db2pool_capacity",
            "Maximum number of idle connections the pool retains",
            POOL_LABELS,
        )
        self.create_gauge(
            "db2_connection_status",
            "Indicates whether the DB2 database is reachable (1 = reachable, 0 = unreachable)",
            ["dbhost", "dbname"],
        )
        self.create_gauge(
            "db2_query_rows",
            "Number of rows returned by the last run of a query",
            ["pool", "query"],
        )

    def create_gauge(
        self,
        metric_name: str,
        metric_desc: str,
        metric_labels: list | None = None,
    ):
        """Create a new Prometheus gauge metric."""
        metric_labels = metric_labels or []
        try:
            if metric_labels:
                gauge = Gauge(
                    metric_name, metric_desc, metric_labels, registry=self.registry
                )
            else:
                gauge = Gauge(metric_name, metric_desc, registry=self.registry)
            self.metric_dict[metric_name] = gauge
            logger.info(f"[GAUGE] [{metric_name}] created")
        except ValueError as e:
            logger.warning(f"[GAUGE] [{metric_name}] already exists: {e}")

    def set_gauge(self, metric_name: str, metric_value: float, metric_labels: dict | None = None):
        """
        Set the value of a Prometheus gauge metric.
        """
        metric_labels = metric_labels or {}
        try:
            if metric_labels:
                self.metric_dict[metric_name].labels(**metric_labels).set(metric_value)
            else:
                self.metric_dict[metric_name].set(metric_value)
            labels_str = ', '.join(f'{key}: "{value}"' for key, value in metric_labels.items())
            logger.debug(f"[GAUGE] [{metric_name}{{{labels_str}}}] {metric_value}")
        except Exception as e:
            logger.error(f"[GAUGE] [{metric_name}] failed to update: {e}")

    def record_pool_state(self, pool_name: str, idle: int, checked_out: int, capacity: int) -> None:
        """Publish the current occupancy of a pool."""
        labels = {"pool": pool_name}
        self.set_gauge("db2pool_idle_connections", idle, labels)
        self.set_gauge("db2pool_checked_out_connections", checked_out, labels)
        self.set_gauge("db2pool_capacity", capacity, labels)

    def start(self):
        """Start the Prometheus HTTP server."""
        try:
            start_http_server(self.port, addr=self.host, registry=self.registry)
            logger.info(f"Db2Pool exporter started at {self.host}:{self.port}")
        except Exception as e:
            logger.fatal(
                f"Failed to start Db2Pool exporter at {self.host}:{self.port}: {e}"
            )
            raise e

import unittest
import asyncio
import structlog
from unittest.mock import patch, MagicMock, mock_open

from app import (
    build_pool,
    load_config_yaml,
    make_configurator,
    query_set,
    run_query,
)
from db2Pool.config_manager import Db2Endpoint, PoolConfig, QueryConfig
from db2Pool.connection_pool import ConnectionPool
from db2Pool.exceptions import ConnectionNotWorkingError
from db2Pool.logging_manager import setup_logging


def make_endpoint(**overrides):
    values = dict(
        db_host="localhost", db_name="test_db", db_port=50000, db_user="user", db_passwd="pass",
    )
    values.update(overrides)
    return Db2Endpoint(**values)


class TestApp(unittest.TestCase):

    @patch('os.makedirs')
    @patch('db2Pool.logging_manager.RotatingFileHandler')
    @patch('logging.getLogger')
    def test_setup_logging(self, mock_get_logger, mock_rotating_file_handler, mock_makedirs):
        """
        Test that logging is set up correctly.
        """
        mock_logger = MagicMock()
        mock_get_logger.return_value = mock_logger
        mock_rotating_file_handler.return_value = MagicMock()

        log = setup_logging("/fake/log/path", "INFO")
        self.assertIsNotNone(log)

        mock_makedirs.assert_called_once_with("/fake/log/path", exist_ok=True)
        mock_rotating_file_handler.assert_any_call(
            "/fake/log/path/db2pool.log", maxBytes=10 * 1024 * 1024, backupCount=5
        )
        mock_rotating_file_handler.assert_any_call(
            "/fake/log/path/db2pool.err", maxBytes=10 * 1024 * 1024, backupCount=5
        )
        # Main, error and console handlers
        self.assertEqual(mock_logger.addHandler.call_count, 3)

        # Events carry their level and a timestamp
        processors = structlog.get_config()["processors"]
        self.assertIn(structlog.stdlib.add_log_level, processors)
        self.assertTrue(any(isinstance(p, structlog.processors.TimeStamper) for p in processors))

    def test_load_config_yaml(self):
        yaml_content = """
        global_config:
          log_level: INFO
          default_time_interval: 15
          log_path: "logs/"
          port: 9844
        pool:
          capacity: 4
        """

        with patch('builtins.open', mock_open(read_data=yaml_content)):
            config = load_config_yaml("fake_config.yaml")

        self.assertEqual(config["global_config"]["log_level"], "INFO")
        self.assertEqual(config["global_config"]["default_time_interval"], 15)
        self.assertEqual(config["pool"]["capacity"], 4)

    def test_load_config_yaml_missing_file_exits(self):
        with patch('builtins.open', side_effect=FileNotFoundError):
            with self.assertRaises(SystemExit):
                load_config_yaml("missing.yaml")

    def test_make_configurator_sets_schema(self):
        conn = MagicMock()
        conn.is_working.return_value = True
        make_configurator(make_endpoint(schema_name="APP"))(conn)
        conn.set_current_schema.assert_called_once_with("APP")

    def test_make_configurator_rejects_dead_connection(self):
        conn = MagicMock()
        conn.is_working.return_value = False
        with self.assertRaises(ConnectionNotWorkingError):
            make_configurator(make_endpoint(schema_name="APP"))(conn)
        conn.set_current_schema.assert_not_called()

        make_configurator(make_endpoint(), check_working=False)(conn)
        conn.set_current_schema.assert_not_called()

    @patch('app.ConnectionPool')
    def test_build_pool_warms_up(self, mock_pool_cls):
        exporter = MagicMock()
        pool = build_pool(make_endpoint(), PoolConfig(capacity=3, warm_up=2), exporter)
        self.assertIs(pool, mock_pool_cls.return_value)
        _, kwargs = mock_pool_cls.call_args
        self.assertEqual(kwargs["capacity"], 3)
        self.assertIs(kwargs["exporter"], exporter)
        pool.warm_up.assert_called_once_with(2)

    @patch('app.ConnectionPool')
    def test_build_pool_survives_warm_up_failure(self, mock_pool_cls):
        mock_pool_cls.return_value.warm_up.side_effect = ConnectionError("down")
        pool = build_pool(make_endpoint(), PoolConfig(), MagicMock())
        self.assertIs(pool, mock_pool_cls.return_value)

    def test_run_query_releases_on_success(self):
        conn = MagicMock()
        conn.execute.return_value = [[1]]
        pool = ConnectionPool("ep", capacity=1, connection_factory=lambda ep: conn)
        query = QueryConfig(name="q", query="sql", max_rows=5)

        self.assertEqual(run_query(pool, query), [[1]])
        conn.execute.assert_called_once_with("sql", max_rows=5)
        self.assertEqual(pool.size, 1)
        conn.close.assert_not_called()

    def test_run_query_discards_on_failure(self):
        conn = MagicMock()
        conn.execute.side_effect = Exception("SQL0204N")
        pool = ConnectionPool("ep", capacity=1, connection_factory=lambda ep: conn)

        with self.assertRaises(Exception):
            run_query(pool, QueryConfig(name="q", query="sql"))
        conn.close.assert_called_once_with()
        self.assertEqual(pool.size, 0)
        self.assertEqual(pool.checked_out, 0)

    @patch('app.asyncio.sleep', side_effect=asyncio.CancelledError)
    @patch('app.run_query', return_value=[[1], [2]])
    def test_query_set_exports_row_count(self, mock_run_query, mock_sleep):
        exporter = MagicMock()
        pool = MagicMock()
        pool.name = "main"
        query = QueryConfig(name="q", query="sql", time_interval=7)

        with self.assertRaises(asyncio.CancelledError):
            asyncio.run(query_set(pool, query, exporter, 15))

        mock_run_query.assert_called_once_with(pool, query)
        exporter.set_gauge.assert_called_once_with(
            "db2_query_rows", 2, {"pool": "main", "query": "q"}
        )
        self.assertEqual(mock_sleep.call_args.args[0], 7)

    @patch('app.random.uniform', return_value=0)
    @patch('app.asyncio.sleep', side_effect=asyncio.CancelledError)
    @patch('app.run_query', side_effect=Exception("connection lost"))
    def test_query_set_backs_off_on_failure(self, _, mock_sleep, __):
        exporter = MagicMock()
        query = QueryConfig(name="q", query="sql")

        with self.assertRaises(asyncio.CancelledError):
            asyncio.run(query_set(MagicMock(), query, exporter, 10))

        exporter.set_gauge.assert_not_called()
        self.assertEqual(mock_sleep.call_args.args[0], 20)


if __name__ == '__main__':
    unittest.main()

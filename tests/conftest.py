import os

import pytest

from db2Pool.config_manager import Db2Endpoint
from db2Pool.prometheus import PoolExporter


@pytest.fixture
def endpoint():
    return Db2Endpoint(
        db_host=os.environ.get("DB2POOL_TEST_HOST", "localhost"),
        db_name=os.environ.get("DB2POOL_TEST_DB", "test_db"),
        db_port=int(os.environ.get("DB2POOL_TEST_PORT", "50000")),
        db_user=os.environ.get("DB2POOL_TEST_USER", "user"),
        db_passwd=os.environ.get("DB2POOL_TEST_PASSWD", "pass"),
    )


@pytest.fixture
def pool_exporter():
    return PoolExporter(port=9877)

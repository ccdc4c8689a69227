from pydantic import BaseModel, ValidationError, constr, conint
from typing import List, Optional

class Db2Endpoint(BaseModel):
    db_host: constr(strict=True)
    db_name: constr(strict=True)
    db_port: conint(gt=0, lt=65536)
    db_user: constr(strict=True)
    db_passwd: constr(strict=True)
    db_passwd_encrypted: bool = False
    schema_name: Optional[str] = None
    ssl: bool = False
    ssl_ca_cert: Optional[str] = None

    model_config = {"frozen": True}

    def connection_string(self) -> str:
        """
        Build the ``ibm_db`` connection string for this endpoint.
        """
        conn_str = "DATABASE={};HOSTNAME={};PORT={};PROTOCOL=TCPIP;UID={};PWD={};".format(
            self.db_name, self.db_host, self.db_port, self.db_user, self.db_passwd)
        if self.ssl:
            conn_str += "SECURITY=SSL;"
            if self.ssl_ca_cert:
                conn_str += "SSLServerCertificate={};".format(self.ssl_ca_cert)
        return conn_str

    def __str__(self) -> str:
        return "{}:{}/{}".format(self.db_host, self.db_port, self.db_name)

class PoolConfig(BaseModel):
    capacity: conint(ge=0) = 10
    # ``None`` warms the pool up to its capacity
    warm_up: Optional[conint(ge=0)] = None
    check_working: bool = True

class GlobalConfig(BaseModel):
    log_level: constr(strict=True) = "INFO"
    default_time_interval: conint(gt=0) = 15
    max_retry_delay: conint(gt=0) = 300
    log_path: constr(strict=True) = "logs/"
    port: conint(gt=0, lt=65536) = 9844

class QueryConfig(BaseModel):
    name: constr(strict=True)
    query: constr(strict=True)
    time_interval: Optional[conint(gt=0)] = None
    max_rows: Optional[conint(gt=0)] = None

class Config(BaseModel):
    global_config: GlobalConfig
    pool: PoolConfig = PoolConfig()
    connections: List[Db2Endpoint]
    queries: List[QueryConfig] = []

def validate_config(config: dict) -> Config:
    """
    Validate the configuration dictionary using Pydantic.
    """
    try:
        return Config(**config)
    except ValidationError as e:
        raise ValueError(f"Configuration validation error: {e}")

import yaml

def generate_config(path="config.yaml"):
    """
    Generate a sample config.yaml file for the pool runner.
    """
    config = {
        "global_config": {
            "log_level": "INFO",
            "default_time_interval": 15,
            "max_retry_delay": 300,
            "log_path": "logs/",
            "port": 9844
        },
        "pool": {
            "capacity": 4,
            "warm_up": 2,
            "check_working": True
        },
        "connections": [
            {
                "db_host": "localhost",
                "db_name": "sample_db",
                "db_port": 50000,
                "db_user": "db2inst1",
                "db_passwd": "encrypted_password_here",
                "db_passwd_encrypted": True,
                "schema_name": "DB2INST1"
            }
        ],
        "queries": [
            {
                "name": "dummy",
                "query": "SELECT 1 FROM sysibm.sysdummy1",
                "time_interval": 10
            },
            {
                "name": "active_connections",
                "query": "SELECT COUNT(*) FROM TABLE(MON_GET_CONNECTION(NULL, -1))",
                "max_rows": 1
            }
        ]
    }

    with open(path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)

if __name__ == "__main__":
    generate_config()
    print("Sample config.yaml file generated.")

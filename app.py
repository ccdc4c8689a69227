# -*- coding: utf-8 -*-

import sys
import argparse
import yaml
import logging
import asyncio
import random
from db2Pool.config_manager import validate_config
from db2Pool.connection_pool import ConnectionPool, check_connection_working
from db2Pool.logging_manager import setup_logging
from db2Pool.prometheus import PoolExporter
from db2Pool.utils import resolve_endpoint, sanitize_config


def load_config_yaml(file_str):
    """
    Loads and parses a YAML configuration file.
    """
    logging.info(f"Loading configuration file: {file_str}")
    try:
        with open(file_str, "r") as f:
            file_dict = yaml.safe_load(f)
            if not isinstance(file_dict, dict):
                logging.fatal(f"Could not parse '{file_str}' as dict")
                sys.exit(1)
            return file_dict
    except yaml.YAMLError as e:
        logging.fatal(f"File {file_str} is not a valid YAML: {e}")
        sys.exit(1)
    except FileNotFoundError:
        logging.fatal(f"File {file_str} not found")
        sys.exit(1)
    except Exception as e:
        logging.fatal(f"Could not open file {file_str}: {e}")
        sys.exit(1)

def make_configurator(endpoint, check_working=True):
    """
    Build the initializer applied to every new connection of a pool.
    """
    def configure(conn):
        if check_working:
            check_connection_working(conn)
        if endpoint.schema_name:
            conn.set_current_schema(endpoint.schema_name)
    return configure

def build_pool(endpoint, pool_config, exporter):
    """
    Create a pool for ``endpoint`` and warm it up.
    """
    endpoint = resolve_endpoint(endpoint)
    pool = ConnectionPool(
        endpoint,
        capacity=pool_config.capacity,
        configurator=make_configurator(endpoint, pool_config.check_working),
        exporter=exporter,
    )
    try:
        pool.warm_up(pool_config.warm_up)
    except Exception as e:
        # The pool still works; connections will be created on demand
        logging.error(f"[{pool.name}] warm-up failed: {e}")
    return pool

def run_query(pool, config_query):
    """
    Execute one query on a pooled connection and return its rows.

    A connection whose query failed is discarded rather than reused.
    """
    conn = None
    try:
        with pool.connection() as conn:
            return conn.execute(config_query.query, max_rows=config_query.max_rows)
    except Exception:
        if conn is not None:
            pool.discard(conn)
        raise

async def query_set(pool, config_query, exporter, default_time_interval, max_retry_delay=300):
    """
    Asynchronous function to execute a query periodically on the pool.
    """
    time_interval = config_query.time_interval or default_time_interval
    logging.info(
        f"Starting query set for: {config_query.name} with interval {time_interval} seconds."
    )
    # Base delay between successful runs; also serves as the starting point for retries
    retry_delay = time_interval

    while True:
        try:
            rows = await asyncio.to_thread(run_query, pool, config_query)
            exporter.set_gauge("db2_query_rows", len(rows), {"pool": pool.name, "query": config_query.name})
            retry_delay = time_interval
            await asyncio.sleep(time_interval)
        except Exception as e:
            logging.error(f"Error executing query {config_query.name}: {e}")
            # Exponentially increase delay, capped at max_retry_delay, and add jitter
            retry_delay = min(retry_delay * 2, max_retry_delay)
            jitter = random.uniform(0, retry_delay * 0.1)
            await asyncio.sleep(retry_delay + jitter)

async def main(config, exporter):
    """Run every configured query against a warmed-up pool per connection."""
    global_config = config.global_config
    pools = []
    try:
        executions = []
        for endpoint in config.connections:
            pool = await asyncio.to_thread(build_pool, endpoint, config.pool, exporter)
            pools.append(pool)
            for q in config.queries:
                executions.append(query_set(
                    pool, q, exporter,
                    global_config.default_time_interval,
                    global_config.max_retry_delay,
                ))
        await asyncio.gather(*executions)
    finally:
        for pool in pools:
            pool.close()

if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='DB2 connection pool runner')
    parser.add_argument('config_file', type=str, help='Path to the config YAML file')
    args = parser.parse_args()

    raw_config = load_config_yaml(args.config_file)
    try:
        config = validate_config(raw_config)
    except ValueError as e:
        logging.critical(f"{e}. Check configuration.")
        sys.exit(1)

    setup_logging(config.global_config.log_path, logging.getLevelName(config.global_config.log_level))
    logging.info(f"Loaded config: {sanitize_config(raw_config)}")

    exporter = PoolExporter(port=config.global_config.port)
    exporter.start()

    try:
        asyncio.run(main(config, exporter))
    except KeyboardInterrupt:
        logging.info("Received KeyboardInterrupt, shutting down.")

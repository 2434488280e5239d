#!/usr/bin/env python3
import argparse
import logging
import sys

from sales_stats.launcher import RunRequest, initialize_log, run_role, spawn_local
from sales_stats.utils.communication.topology import NodeRole
from sales_stats.utils.config import AppConfig
from sales_stats.utils.protocol import TRANSPORT_LOCAL, TRANSPORTS

# Configurar logging de pika temprano
logging.getLogger('pika').setLevel(logging.CRITICAL)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Estadísticas de ventas distribuidas entre workers.")
    parser.add_argument("filename", nargs="?", help="archivo de registros de ventas")
    parser.add_argument("report_year", nargs="?", help="año del reporte")
    parser.add_argument("customer_class", nargs="?", help="clase de cliente del reporte")
    parser.add_argument("--workers", type=int, help="cantidad de workers (default: config)")
    parser.add_argument("--transport", choices=TRANSPORTS, help="backend de mensajería (default: config)")
    parser.add_argument("--config", default=None, help="ruta al config.ini")
    return parser, parser.parse_args(argv)


def initialize_config(args) -> AppConfig:
    config = AppConfig(args.config)
    if args.workers is not None:
        config.workers = args.workers
    if args.transport is not None:
        config.transport = args.transport
    config.validate()
    return config


def main(argv=None) -> int:
    parser, args = parse_args(argv)
    try:
        config = initialize_config(args)
    except ValueError as e:
        parser.error(str(e))
    initialize_log(config.log_level)

    logging.debug(f"action: config | result: success | {config}")
    request = RunRequest(args.filename, args.report_year, args.customer_class)

    if config.transport == TRANSPORT_LOCAL:
        role = NodeRole.COORDINATOR
    else:
        if config.node_role is None or config.node_id is None:
            parser.error("NODE_ROLE y NODE_ID son obligatorios con transporte rabbitmq")
        role = config.node_role

    if role == NodeRole.COORDINATOR and None in (args.filename, args.report_year, args.customer_class):
        parser.error("el coordinador requiere filename, report_year y customer_class")

    if config.transport == TRANSPORT_LOCAL:
        return spawn_local(config, request)
    return run_role(role, config.node_id, config, request)


if __name__ == "__main__":
    sys.exit(main())

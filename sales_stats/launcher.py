import logging
import multiprocessing
import signal
from dataclasses import dataclass
from typing import Optional

from sales_stats.error_collector.common.error_collector import ErrorCollector
from sales_stats.middleware.local_middleware import LocalBroker
from sales_stats.server.common.coordinator import Coordinator
from sales_stats.utils.communication.channels import (
    ErrorChannel,
    MiddlewareFactory,
    WorkChannel,
    build_local_broker,
)
from sales_stats.utils.communication.topology import NodeRole
from sales_stats.utils.config import AppConfig
from sales_stats.utils.protocol import EXIT_CONFIG_ERROR, TRANSPORT_LOCAL
from sales_stats.workers.aggregators.common.sales_aggregator import SalesAggregator


@dataclass(frozen=True)
class RunRequest:
    filename: Optional[str] = None
    report_year: Optional[str] = None
    customer_class: Optional[str] = None


def initialize_log(logging_level):
    """Inicializa logging"""
    # Convertir string a constante de logging
    if isinstance(logging_level, str):
        logging_level = getattr(logging, logging_level.upper())

    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(message)s",
        level=logging_level,
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Silenciar logs de pika
    logging.getLogger('pika').setLevel(logging.ERROR)


def build_node(role: NodeRole, node_id: int, config: AppConfig, factory: MiddlewareFactory):
    topology = config.topology()
    if topology.role_of(node_id) != role:
        raise ValueError(f"el nodo {node_id} es {topology.role_of(node_id).value}, no {role.value}")

    error_channel = ErrorChannel(node_id, topology, factory)
    if role == NodeRole.ERROR_COLLECTOR:
        return ErrorCollector(topology, error_channel)

    work_channel = WorkChannel(node_id, topology, factory)
    if role == NodeRole.COORDINATOR:
        return Coordinator(topology, work_channel, error_channel, config.validation_rules())
    return SalesAggregator(node_id, work_channel, error_channel, config.validation_rules())


def run_role(role: NodeRole, node_id: int, config: AppConfig, request: RunRequest,
             broker: Optional[LocalBroker] = None) -> int:
    factory = MiddlewareFactory(config.transport, config.rabbit_host, broker)
    node = build_node(role, node_id, config, factory)
    signal.signal(signal.SIGTERM, node.shutdown)

    logging.debug(f"action: run_role | role:{role.value} | node:{node_id}")
    if role == NodeRole.COORDINATOR:
        status = node.run(request.filename, request.report_year, request.customer_class)
    else:
        status = node.run()
    node.shutdown()
    return status


def _local_entrypoint(role: NodeRole, node_id: int, config: AppConfig, request: RunRequest, broker: LocalBroker):
    initialize_log(config.log_level)
    raise SystemExit(run_role(role, node_id, config, request, broker))


def spawn_local(config: AppConfig, request: RunRequest) -> int:
    """
    Corre toda la topologia en este host, un proceso por nodo. Devuelve el
    exit status del coordinador.
    """
    if config.transport != TRANSPORT_LOCAL:
        raise ValueError(f"spawn_local requiere el transporte local, recibido {config.transport}")

    topology = config.topology()
    ctx = multiprocessing.get_context(config.start_method)
    broker = build_local_broker(topology, context=ctx)

    processes = {}
    for node_id in topology.node_ids:
        role = topology.role_of(node_id)
        process = ctx.Process(
            target=_local_entrypoint,
            args=(role, node_id, config, request, broker),
            name=f"{role.value}_{node_id}",
        )
        process.start()
        processes[node_id] = process
        logging.debug(f"action: spawn | role:{role.value} | node:{node_id} | pid:{process.pid}")

    for node_id, process in processes.items():
        process.join()
        if process.exitcode != 0:
            logging.warning(f"action: join | process:{process.name} | exitcode:{process.exitcode}")

    coordinator_status = processes[topology.coordinator_id].exitcode
    if coordinator_status is None or coordinator_status < 0:
        return EXIT_CONFIG_ERROR
    return coordinator_status

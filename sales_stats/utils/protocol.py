# Backends de transporte
TRANSPORT_LOCAL = 'local'
TRANSPORT_RABBITMQ = 'rabbitmq'
TRANSPORTS = (TRANSPORT_LOCAL, TRANSPORT_RABBITMQ)

# Endpoints de RabbitMQ / broker local
RUN_PARAMETERS_EXCHANGE = 'run_parameters_exchange'
REDUCE_QUEUE = 'to_coordinator_reduce'
ERROR_COLLECTOR_QUEUE = 'to_error_collector'
WORKER_QUEUE_PREFIX = 'to_worker'

# Tags de envelope del work channel
TAG_RUN_PARAMETERS = 1
TAG_CHUNK = 2
TAG_PARTIAL_AGGREGATE = 3

# Tag del sentinel al collector. El fin lo decide el emisor, no el tag.
TAG_COLLECTOR_END = 0

# Codigos de salida
EXIT_OK = 0
EXIT_CONFIG_ERROR = 1


def worker_queue_name(worker_id: int) -> str:
    return f"{WORKER_QUEUE_PREFIX}_{worker_id}"


def worker_consumer_id(worker_id: int) -> str:
    return f"worker_{worker_id}"

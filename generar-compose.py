#!/usr/bin/env python3
import argparse
import yaml


class FlowList(list):
    pass


def flow_list_representer(dumper, data):
    return dumper.represent_sequence("tag:yaml.org,2002:seq", data, flow_style=True)


META_KEYS = ("compose_name", "output_file", "data_path", "logging_level",
             "input_file", "report_year", "customer_class")


def read_config(path: str):
    """
    Lee un archivo 'clave: valor'. Las claves de META_KEYS van a meta,
    el resto son cantidades de nodos (ej. WORKERS: 4).
    """
    meta = {
        "compose_name": "sales_stats",
        "output_file": "docker-compose.yaml",
        "data_path": "./.data",
        "logging_level": "INFO",
        "input_file": "sales.txt",
        "report_year": "2017",
        "customer_class": "G",
    }
    nodes = {}

    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or ":" not in line:
                continue

            key, value = line.split(":", 1)
            key, value = key.strip(), value.strip()

            if key.lower() in META_KEYS:
                meta[key.lower()] = value
            else:
                nodes[key.upper()] = int(value)

    yaml.add_representer(FlowList, flow_list_representer)

    return meta, nodes


def _node_environment(meta: dict, role: str, node_id: int, workers: int):
    return [
        "PYTHONUNBUFFERED=1",
        f"LOGGING_LEVEL={meta['logging_level']}",
        "TRANSPORT=rabbitmq",
        "RABBIT_HOST=rabbitmq",
        f"WORKERS={workers}",
        f"NODE_ROLE={role}",
        f"NODE_ID={node_id}",
    ]


def _node_service(meta: dict, service_name: str, role: str, node_id: int, workers: int, entrypoint: list):
    return {
        "build": {
            "context": ".",             # project root
            "dockerfile": "Dockerfile"
        },
        "entrypoint": FlowList(entrypoint),
        "container_name": service_name,
        "environment": _node_environment(meta, role, node_id, workers),
        "volumes": [
            "./config.ini:/app/config.ini:ro",
        ],
        "networks": ["testing_net"],
        "depends_on": {"rabbitmq": {"condition": "service_healthy"}},
    }


def define_rabbitmq(compose: dict):
    compose["services"]["rabbitmq"] = {
        "image": "rabbitmq:3-management",
        "container_name": "rabbitmq",
        "hostname": "rabbitmq",
        "ports": [
            "5672:5672",   # RabbitMQ main port
            "15672:15672"  # RabbitMQ management UI
        ],
        "healthcheck": {
            "test": FlowList(["CMD", "rabbitmqctl", "status"]),
            "interval": "5s",
            "timeout": "5s",
            "retries": 10,
        },
        "networks": ["testing_net"]
    }


def define_coordinator(meta: dict, compose: dict, workers: int):
    entrypoint = ["python3", "main.py", f"/data/{meta['input_file']}", meta["report_year"], meta["customer_class"]]
    service = _node_service(meta, "coordinator", "coordinator", 0, workers, entrypoint)
    service["volumes"].append(f"{meta['data_path']}:/data:ro")
    compose["services"]["coordinator"] = service


def define_error_collector(meta: dict, compose: dict, workers: int):
    compose["services"]["error_collector"] = _node_service(
        meta, "error_collector", "error_collector", 1, workers, ["python3", "main.py"]
    )


def define_worker(meta: dict, compose: dict, node_id: int, workers: int):
    service_name = f"worker_id_{node_id}_service"
    compose["services"][service_name] = _node_service(
        meta, service_name, "worker", node_id, workers, ["python3", "main.py"]
    )


def define_network(compose: dict):
    compose["networks"] = {
        "testing_net": {
            "driver": "bridge"
        }
    }


def generate_compose(meta: dict, nodes: dict):
    unknown = set(nodes) - {"WORKERS"}
    if unknown:
        raise ValueError(f"Tipo de nodo inválido: {', '.join(sorted(unknown))}")
    workers = nodes.get("WORKERS", 0)
    if workers < 1:
        raise ValueError("Debe haber al menos un worker.")

    compose = {
        "name": meta.get("compose_name", "sales_stats"),
        "services": {}
    }

    define_rabbitmq(compose)
    define_coordinator(meta, compose, workers)
    define_error_collector(meta, compose, workers)
    # ids 0 y 1 reservados para coordinador y error collector
    for node_id in range(2, workers + 2):
        define_worker(meta, compose, node_id, workers)
    define_network(compose)

    return compose


def main():
    parser = argparse.ArgumentParser(description="Genera el docker-compose de la corrida distribuida")
    parser.add_argument(
        "--config",
        required=True,
        help="Archivo de configuración a usar"
    )
    args = parser.parse_args()

    meta, nodes = read_config(args.config)
    compose = generate_compose(meta, nodes)

    output_file = meta.get("output_file", "docker-compose.yaml")
    with open(output_file, "w") as f:
        yaml.dump(compose, f, sort_keys=False)

    print(f"Archivo '{output_file}' generado correctamente.")


if __name__ == "__main__":
    main()

import os
from configparser import ConfigParser
from typing import Optional

from sales_stats.utils.communication.topology import NodeRole, Topology
from sales_stats.utils.protocol import TRANSPORTS, TRANSPORT_LOCAL
from sales_stats.workers.aggregators.common.validator import ValidationRules

DEFAULT_CONFIG_PATH = os.getenv("SALES_STATS_CONFIG", "config.ini")


class AppConfig:
    """
    Configuracion desde un INI; cada clave se puede pisar con una variable de
    entorno. Sin archivo se usan los defaults.
    """

    def __init__(self, path: Optional[str] = None):
        cfg = ConfigParser()
        self.path = path or DEFAULT_CONFIG_PATH
        self.loaded_files = cfg.read(self.path)

        try:
            self.log_level = os.getenv("LOGGING_LEVEL", cfg.get("DEFAULT", "LOGGING_LEVEL", fallback="INFO")).upper()

            self.transport = os.getenv("TRANSPORT", cfg.get("RUN", "TRANSPORT", fallback=TRANSPORT_LOCAL)).lower()
            self.workers = int(os.getenv("WORKERS", cfg.get("RUN", "WORKERS", fallback="3")))
            self.start_method = os.getenv("START_METHOD", cfg.get("RUN", "START_METHOD", fallback="spawn"))

            self.rabbit_host = os.getenv("RABBIT_HOST", cfg.get("RABBIT", "HOST", fallback="rabbitmq"))

            self.min_year = int(os.getenv("MIN_YEAR", cfg.get("VALIDATION", "MIN_YEAR", fallback="1997")))
            self.max_year = int(os.getenv("MAX_YEAR", cfg.get("VALIDATION", "MAX_YEAR", fallback="2018")))
            classes = os.getenv("CUSTOMER_CLASSES", cfg.get("VALIDATION", "CUSTOMER_CLASSES", fallback="G,I,R"))
            self.customer_classes = tuple(c.strip() for c in classes.split(",") if c.strip())

            role = os.getenv("NODE_ROLE")
            self.node_role = NodeRole.parse(role) if role else None
            node_id = os.getenv("NODE_ID")
            self.node_id = int(node_id) if node_id else None
        except ValueError as e:
            raise ValueError(f"Error de parseo de configuración ({self.path}): {e}") from e

        self.validate()

    def validate(self):
        if self.transport not in TRANSPORTS:
            raise ValueError(f"Transporte inválido: {self.transport} (esperado uno de: {', '.join(TRANSPORTS)})")
        if self.workers < 0:
            raise ValueError(f"WORKERS debe ser >= 0, recibido {self.workers}")
        if self.min_year > self.max_year:
            raise ValueError(f"MIN_YEAR {self.min_year} mayor que MAX_YEAR {self.max_year}")
        if not self.customer_classes:
            raise ValueError("CUSTOMER_CLASSES no puede estar vacío")
        if any(len(c) != 1 for c in self.customer_classes):
            raise ValueError(f"CUSTOMER_CLASSES debe ser una lista de caracteres: {self.customer_classes}")

    def validation_rules(self) -> ValidationRules:
        return ValidationRules(self.min_year, self.max_year, self.customer_classes)

    def topology(self) -> Topology:
        return Topology(self.workers)

    def __repr__(self):
        return (
            f"AppConfig(transport={self.transport}, workers={self.workers}, log_level={self.log_level}, "
            f"years=[{self.min_year}, {self.max_year}], classes={','.join(self.customer_classes)})"
        )

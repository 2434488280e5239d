import logging
import sys
from enum import Enum
from typing import List, Optional, Sequence, TextIO, Union

from sales_stats.utils.communication.channels import ErrorChannel, WorkChannel
from sales_stats.utils.communication.topology import Topology
from sales_stats.utils.file_utils.record_store import (
    MalformedRecordSourceError,
    RecordStore,
    UnreadableRecordSourceError,
)
from sales_stats.utils.file_utils.sales_record import SalesRecord
from sales_stats.utils.processing.aggregate_vector import AggregateVector
from sales_stats.utils.processing.run_parameters import RunParameters
from sales_stats.utils.processing.sales_chunk import SalesChunk
from sales_stats.utils.protocol import EXIT_CONFIG_ERROR, EXIT_OK
from sales_stats.workers.aggregators.common.validator import ValidationRules
from .partitioner import partition
from .report import format_report


class ConfigErrorKind(Enum):
    UNREADABLE_FILE = "unreadable_file"
    MALFORMED_INPUT = "malformed_input"
    YEAR_OUT_OF_RANGE = "year_out_of_range"
    INVALID_CUSTOMER_CLASS = "invalid_customer_class"
    NO_WORKERS = "no_workers"


class ConfigError(Exception):
    """Error de configuracion fatal, detectado antes de distribuir."""

    def __init__(self, kind: ConfigErrorKind, message: str):
        super().__init__(message)
        self.kind = kind

    def __str__(self):
        return f"{self.kind.value}: {self.args[0]}"


class Coordinator:
    """
    Lee la entrada, distribuye un chunk por worker, espera la reduccion e
    imprime el reporte. El collector se termina al final en todos los
    caminos, incluida una configuracion invalida.
    """

    def __init__(self, topology: Topology, work_channel: WorkChannel, error_channel: ErrorChannel,
                 rules: ValidationRules = ValidationRules(), output: Optional[TextIO] = None):
        self.topology = topology
        self.node_id = topology.coordinator_id
        self.work_channel = work_channel
        self.error_channel = error_channel
        self.rules = rules
        self.output = output
        self.params: Optional[RunParameters] = None

    def shutdown(self, signum=None, frame=None):
        logging.info(f"action: shutdown | node:{self.node_id} | signal:{signum}")
        self.work_channel.close()
        self.error_channel.close()

    def validate_inputs(self, path: str, report_year: Union[int, str], customer_class: str) -> int:
        """
        Valida los argumentos de la corrida. Devuelve el año como int; lanza ConfigError.
        """
        try:
            RecordStore.check_readable(path)
        except UnreadableRecordSourceError as e:
            raise ConfigError(ConfigErrorKind.UNREADABLE_FILE, str(e)) from e

        try:
            year = int(report_year)
        except (TypeError, ValueError):
            raise ConfigError(ConfigErrorKind.YEAR_OUT_OF_RANGE, f"report year {report_year!r} is not an integer")
        if not self.rules.year_in_range(year):
            raise ConfigError(
                ConfigErrorKind.YEAR_OUT_OF_RANGE,
                f"report year {year} outside [{self.rules.min_year}, {self.rules.max_year}]",
            )

        if not self.rules.is_known_class(customer_class):
            raise ConfigError(
                ConfigErrorKind.INVALID_CUSTOMER_CLASS,
                f"customer class {customer_class!r} not in {', '.join(self.rules.customer_classes)}",
            )

        if self.topology.worker_count == 0:
            raise ConfigError(ConfigErrorKind.NO_WORKERS, "no worker nodes available")
        return year

    def load_records(self, path: str) -> RecordStore:
        try:
            return RecordStore.load(path)
        except UnreadableRecordSourceError as e:
            raise ConfigError(ConfigErrorKind.UNREADABLE_FILE, str(e)) from e
        except MalformedRecordSourceError as e:
            raise ConfigError(ConfigErrorKind.MALFORMED_INPUT, str(e)) from e

    def distribute(self, records: Sequence[SalesRecord], params: RunParameters) -> List[SalesChunk]:
        self.params = params
        chunks = partition(records, self.topology.worker_ids)
        self.work_channel.broadcast_parameters(params)
        self.work_channel.scatter(chunks)
        logging.info(
            f"action: distribute | result: success | workers:{len(chunks)} | sizes:{[len(c) for c in chunks]}"
        )
        return chunks

    def await_reduction(self) -> AggregateVector:
        partials = self.work_channel.gather_partials()
        vector = AggregateVector.merge_all((p.vector for p in partials), self.params.category_count)
        logging.info(f"action: reduction | result: success | partials:{len(partials)}")
        return vector

    def signal_collector_done(self):
        self.error_channel.send_termination()
        logging.info("action: signal_collector_done | result: success")

    def emit_report(self, vector: AggregateVector):
        out = self.output or sys.stdout
        out.write(format_report(vector, self.params))
        out.flush()

    def abort(self, error: Exception):
        """Libera a todos los workers y al collector despues de una falla previa a la distribucion."""
        logging.error(f"action: validate_inputs | result: fail | error:{error}")
        if self.topology.worker_count > 0:
            self.work_channel.broadcast_parameters(RunParameters.aborted())
        self.signal_collector_done()

    def run(self, path: str, report_year: Union[int, str], customer_class: str) -> int:
        logging.info(f"action: coordinator_start | file:{path} | year:{report_year} | class:{customer_class} | workers:{self.topology.worker_count}")
        try:
            year = self.validate_inputs(path, report_year, customer_class)
            store = self.load_records(path)
        except ConfigError as e:
            self.abort(e)
            return EXIT_CONFIG_ERROR
        except Exception as e:
            # nada se distribuyo todavia: se libera al resto antes de propagar
            self.abort(e)
            raise

        params = RunParameters(store.category_count, year, customer_class)
        self.distribute(store.records, params)
        vector = self.await_reduction()
        self.emit_report(vector)
        self.signal_collector_done()
        logging.info("action: coordinator_finish | result: success")
        return EXIT_OK

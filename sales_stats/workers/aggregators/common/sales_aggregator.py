import logging
from collections import Counter
from typing import Optional, Tuple

from sales_stats.utils.communication.channels import ErrorChannel, WorkChannel
from sales_stats.utils.file_utils.sales_record import SalesRecord
from sales_stats.utils.processing.aggregate_vector import AggregateVector
from sales_stats.utils.processing.error_report import ErrorKind
from sales_stats.utils.processing.run_parameters import RunParameters
from sales_stats.utils.processing.sales_chunk import SalesChunk
from sales_stats.utils.protocol import EXIT_OK
from .validator import ValidationRules, validate_record


class SalesAggregator:
    def __init__(self, worker_id: int, work_channel: WorkChannel, error_channel: ErrorChannel,
                 rules: ValidationRules = ValidationRules()):
        self.worker_id = worker_id
        self.work_channel = work_channel
        self.error_channel = error_channel
        self.rules = rules

        self.params: Optional[RunParameters] = None
        self.vector: Optional[AggregateVector] = None
        self.valid_records = 0
        self.errors_by_kind = Counter()

    def shutdown(self, signum=None, frame=None):
        logging.info(f"SIGTERM recibido: cerrando worker {self.worker_id}")
        self.work_channel.close()
        self.error_channel.close()

    def receive_assignment(self) -> Optional[Tuple[SalesChunk, RunParameters]]:
        """
        Primero los parametros, despues el chunk. Devuelve None ante el marcador
        de abort; en ese caso la cola de chunks no se lee.
        """
        params = self.work_channel.receive_parameters()
        if params.is_abort:
            logging.info(f"action: receive_assignment | result: aborted | worker:{self.worker_id}")
            return None

        chunk = self.work_channel.receive_chunk()
        if chunk.owner_worker_id != self.worker_id:
            raise ValueError(f"el worker {self.worker_id} recibio el chunk del worker {chunk.owner_worker_id}")

        self.params = params
        self.vector = AggregateVector(params.category_count)
        logging.debug(f"action: receive_assignment | result: success | worker:{self.worker_id} | records:{len(chunk)}")
        return chunk, params

    def validate(self, record: SalesRecord) -> Optional[ErrorKind]:
        return validate_record(record, self.params.category_count, self.rules)

    def accumulate(self, record: SalesRecord):
        self.vector.add(
            record.category_id,
            record.amount,
            in_period=record.year == self.params.report_period,
            for_class=record.customer_class == self.params.report_customer_class,
        )
        self.valid_records += 1

    def report_error(self, record: SalesRecord, kind: ErrorKind):
        self.errors_by_kind[kind] += 1
        self.error_channel.report(kind, record)

    def process_chunk(self, chunk: SalesChunk):
        for record in chunk:
            kind = self.validate(record)
            if kind is None:
                self.accumulate(record)
            else:
                self.report_error(record, kind)

    def contribute_reduction(self):
        self.work_channel.contribute(self.vector)

    def run(self) -> int:
        assignment = self.receive_assignment()
        if assignment is None:
            return EXIT_OK

        chunk, _ = assignment
        self.process_chunk(chunk)
        self.contribute_reduction()

        logging.info(
            f"action: worker_finish | result: success | worker:{self.worker_id} | valid:{self.valid_records} "
            f"| invalid:{sum(self.errors_by_kind.values())}"
        )
        return EXIT_OK

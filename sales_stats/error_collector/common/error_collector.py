import logging
import sys
from collections import Counter
from enum import Enum
from typing import Optional, TextIO

from sales_stats.utils.communication.channels import ErrorChannel
from sales_stats.utils.communication.topology import Topology
from sales_stats.utils.processing.envelope import Envelope
from sales_stats.utils.processing.error_report import ErrorReport
from sales_stats.utils.protocol import EXIT_OK


class CollectorState(Enum):
    LISTENING = "listening"
    DONE = "done"


class ErrorCollector:
    """
    Imprime los reportes de registros invalidos de cualquier worker, en orden
    de llegada, hasta que llega el mensaje del coordinador. El paso a DONE
    depende solo del emisor del mensaje, nunca del tag ni del payload.
    """

    def __init__(self, topology: Topology, error_channel: ErrorChannel, output: Optional[TextIO] = None):
        self.topology = topology
        self.node_id = topology.collector_id
        self.error_channel = error_channel
        self.output = output
        self.state = CollectorState.LISTENING
        self.tally = Counter()

    def shutdown(self, signum=None, frame=None):
        logging.info(f"SIGTERM recibido: cerrando error collector {self.node_id}")
        self.error_channel.stop_consuming()
        self.error_channel.close()

    def handle(self, envelope: Envelope) -> CollectorState:
        if self.state == CollectorState.DONE:
            logging.warning(f"action: collector_receive | result: ignored_after_done | sender:{envelope.sender_id}")
            return self.state

        if envelope.sender_id == self.topology.coordinator_id:
            self.state = CollectorState.DONE
            logging.info(f"action: collector_done | result: success | reports:{sum(self.tally.values())}")
            return self.state

        if not self.topology.is_worker(envelope.sender_id):
            logging.warning(f"action: collector_receive | result: unknown_sender | sender:{envelope.sender_id}")
            return self.state

        try:
            report = ErrorReport.from_envelope(envelope)
        except ValueError as e:
            logging.error(f"action: decode_error_report | result: fail | sender:{envelope.sender_id} | error:{e}")
            return self.state

        self.tally[report.error_kind] += 1
        out = self.output or sys.stdout
        out.write(f"{report}\n")
        out.flush()
        return self.state

    def run(self) -> int:
        logging.info(f"action: collector_start | node:{self.node_id}")

        def on_envelope(envelope: Envelope):
            if self.handle(envelope) == CollectorState.DONE:
                self.error_channel.stop_consuming()

        self.error_channel.start_consuming(on_envelope)

        for kind, count in sorted(self.tally.items(), key=lambda item: item[0].value):
            logging.info(f"action: collector_summary | kind:{kind.name} | count:{count}")
        return EXIT_OK

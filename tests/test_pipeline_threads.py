import io
import threading

import pytest

from sales_stats.error_collector.common.error_collector import ErrorCollector
from sales_stats.server.common.coordinator import Coordinator
from sales_stats.utils.communication.channels import ErrorChannel, MiddlewareFactory, WorkChannel, build_local_broker
from sales_stats.utils.communication.topology import Topology
from sales_stats.utils.processing.error_report import ErrorKind
from sales_stats.utils.protocol import EXIT_CONFIG_ERROR, EXIT_OK, TRANSPORT_LOCAL
from sales_stats.workers.aggregators.common.sales_aggregator import SalesAggregator

SALES = """10 3
0 201701 G 10
1 201602 G 5
2 201703 I 2.5
1 201713 G 99
0 201705 G 1
5 201701 G 1
2 201701 R 4
1 199012 G 1
0 201711 X 1
1 201704 G -2
"""


@pytest.fixture
def sales_file(tmp_path):
    path = tmp_path / "sales.txt"
    path.write_text(SALES)
    return str(path)


def run_pipeline(path, report_year, customer_class, worker_count=3):
    """Corre cada rol de la topologia en su propio thread sobre un broker local compartido."""
    topology = Topology(worker_count)
    factory = MiddlewareFactory(TRANSPORT_LOCAL, broker=build_local_broker(topology))

    report, errors = io.StringIO(), io.StringIO()
    collector = ErrorCollector(topology, ErrorChannel(topology.collector_id, topology, factory), output=errors)
    workers = [
        SalesAggregator(w, WorkChannel(w, topology, factory), ErrorChannel(w, topology, factory))
        for w in topology.worker_ids
    ]
    coordinator = Coordinator(
        topology,
        WorkChannel(topology.coordinator_id, topology, factory),
        ErrorChannel(topology.coordinator_id, topology, factory),
        output=report,
    )

    statuses = {}
    threads = [threading.Thread(target=lambda: statuses.__setitem__("collector", collector.run()))]
    for worker in workers:
        threads.append(threading.Thread(
            target=lambda w=worker: statuses.__setitem__(w.worker_id, w.run())
        ))
    for thread in threads:
        thread.start()

    status = coordinator.run(path, report_year, customer_class)
    for thread in threads:
        thread.join(timeout=10)
        assert not thread.is_alive()
    return status, statuses, report.getvalue(), errors.getvalue(), collector


def test_full_run(sales_file):
    status, statuses, report, errors, collector = run_pipeline(sales_file, "2017", "G")

    assert status == EXIT_OK
    assert set(statuses.values()) == {EXIT_OK}

    rows = [line.split() for line in report.splitlines()[1:]]
    assert rows == [
        ["0", "11.00", "11.00", "11.00"],
        ["1", "5.00", "0.00", "5.00"],
        ["2", "6.50", "6.50", "0.00"],
    ]

    assert len(errors.splitlines()) == 5
    assert collector.tally == {
        ErrorKind.BAD_MONTH: 1,
        ErrorKind.BAD_CATEGORY: 1,
        ErrorKind.BAD_DATE_RANGE: 1,
        ErrorKind.BAD_CUSTOMER_CLASS: 1,
        ErrorKind.NEGATIVE_AMOUNT: 1,
    }


def test_result_does_not_depend_on_worker_count(sales_file):
    reports = {run_pipeline(sales_file, "2017", "G", worker_count=w)[2] for w in (1, 2, 5)}
    assert len(reports) == 1


def test_invalid_year_aborts_every_node(sales_file):
    status, statuses, report, errors, _ = run_pipeline(sales_file, "1990", "G")

    assert status == EXIT_CONFIG_ERROR
    assert set(statuses.values()) == {EXIT_OK}
    assert report == ""
    assert errors == ""


def test_class_with_delimiter_is_only_a_record_error(tmp_path):
    path = tmp_path / "sales.txt"
    path.write_text("2 3\n2 201703 G,H 50.0\n1 201703 G 5.0\n")

    status, statuses, report, errors, collector = run_pipeline(str(path), "2017", "G", worker_count=1)

    assert status == EXIT_OK
    assert set(statuses.values()) == {EXIT_OK}
    assert collector.tally == {ErrorKind.BAD_CUSTOMER_CLASS: 1}
    assert "2 201703 G,H 50.0" in errors
    assert report.splitlines()[2].split() == ["1", "5.00", "5.00", "5.00"]


def test_undecodable_file_aborts_every_node(tmp_path):
    path = tmp_path / "sales.txt"
    path.write_bytes(b"1 3\n0 201701 G \xff10\n")

    status, statuses, report, errors, _ = run_pipeline(str(path), "2017", "G")

    assert status == EXIT_CONFIG_ERROR
    assert set(statuses.values()) == {EXIT_OK}
    assert report == ""

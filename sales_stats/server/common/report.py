from typing import List

from sales_stats.utils.processing.aggregate_vector import AggregateVector
from sales_stats.utils.processing.run_parameters import RunParameters

CATEGORY_WIDTH = 10
AMOUNT_WIDTH = 16


def format_report(vector: AggregateVector, params: RunParameters) -> str:
    """Una fila por categoria: total, monto del año del reporte, monto de la clase del reporte."""
    lines: List[str] = [
        f"{'category':>{CATEGORY_WIDTH}}"
        f"{'total':>{AMOUNT_WIDTH}}"
        f"{f'year {params.report_period}':>{AMOUNT_WIDTH}}"
        f"{f'class {params.report_customer_class}':>{AMOUNT_WIDTH}}"
    ]
    for category_id, total, given_year, for_customer in vector.rows():
        lines.append(
            f"{category_id:>{CATEGORY_WIDTH}}"
            f"{total:>{AMOUNT_WIDTH}.2f}"
            f"{given_year:>{AMOUNT_WIDTH}.2f}"
            f"{for_customer:>{AMOUNT_WIDTH}.2f}"
        )
    return "\n".join(lines) + "\n"

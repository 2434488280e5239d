from dataclasses import dataclass
from typing import Optional, Tuple

from sales_stats.utils.file_utils.sales_record import SalesRecord
from sales_stats.utils.processing.error_report import ErrorKind

DEFAULT_MIN_YEAR = 1997
DEFAULT_MAX_YEAR = 2018
DEFAULT_CUSTOMER_CLASSES = ("G", "I", "R")

PERIOD_CODE_MIN = 100000
PERIOD_CODE_MAX = 999999


@dataclass(frozen=True)
class ValidationRules:
    min_year: int = DEFAULT_MIN_YEAR
    max_year: int = DEFAULT_MAX_YEAR
    customer_classes: Tuple[str, ...] = DEFAULT_CUSTOMER_CLASSES

    def year_in_range(self, year: int) -> bool:
        return self.min_year <= year <= self.max_year

    def is_known_class(self, customer_class: str) -> bool:
        return customer_class in self.customer_classes


def validate_record(record: SalesRecord, category_count: int,
                    rules: ValidationRules = ValidationRules()) -> Optional[ErrorKind]:
    """
    Devuelve el primer chequeo que falla, o None si el registro es valido.

    Orden fijo: categoria, formato del periodo, mes, ventana de años, clase
    de cliente, monto. No tiene efectos secundarios.
    """
    if not 0 <= record.category_id < category_count:
        return ErrorKind.BAD_CATEGORY
    if not PERIOD_CODE_MIN <= record.period_code <= PERIOD_CODE_MAX:
        return ErrorKind.BAD_DATE_FORMAT
    if not 1 <= record.month <= 12:
        return ErrorKind.BAD_MONTH
    if not rules.year_in_range(record.year):
        return ErrorKind.BAD_DATE_RANGE
    if not rules.is_known_class(record.customer_class):
        return ErrorKind.BAD_CUSTOMER_CLASS
    if not record.amount >= 0:
        return ErrorKind.NEGATIVE_AMOUNT
    return None

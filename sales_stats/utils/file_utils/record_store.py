import logging
import os
from typing import List, Sequence

from .sales_record import SalesRecord


class RecordStoreError(Exception):
    """Error base del record store."""


class UnreadableRecordSourceError(RecordStoreError):
    pass


class MalformedRecordSourceError(RecordStoreError):
    pass


class RecordStore:
    """
    Secuencia ordenada y de solo lectura de ventas leidas de un archivo de lineas.

    Primera linea: ``num_records num_categories``; despues un registro por linea.
    """

    def __init__(self, records: Sequence[SalesRecord], category_count: int, path: str = ""):
        self._records = tuple(records)
        self.category_count = int(category_count)
        self.path = path

    def __len__(self):
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    @property
    def records(self) -> Sequence[SalesRecord]:
        return self._records

    @staticmethod
    def check_readable(path: str) -> None:
        try:
            with open(path, "r", encoding="utf-8"):
                pass
        except OSError as e:
            raise UnreadableRecordSourceError(f"no se puede abrir la entrada {path}: {e}") from e

    @classmethod
    def load(cls, path: str) -> "RecordStore":
        try:
            with open(path, "r", encoding="utf-8") as f:
                return cls._parse(f, path)
        except OSError as e:
            raise UnreadableRecordSourceError(f"no se puede abrir la entrada {path}: {e}") from e
        except UnicodeDecodeError as e:
            raise MalformedRecordSourceError(f"{os.path.basename(path)}: no es texto UTF-8 valido: {e}") from e

    @classmethod
    def _parse(cls, lines, path: str) -> "RecordStore":
        header = next(lines, "")
        try:
            num_records, category_count = (int(v) for v in header.split())
        except ValueError as e:
            raise MalformedRecordSourceError(
                f"{os.path.basename(path)}:1: header must be 'num_records num_categories', got {header.strip()!r}"
            ) from e
        if num_records < 0 or category_count < 0:
            raise MalformedRecordSourceError(
                f"{os.path.basename(path)}:1: negative header values {num_records} {category_count}"
            )

        records: List[SalesRecord] = []
        line_no = 1
        for line in lines:
            line_no += 1
            if not line.strip():
                continue
            if len(records) == num_records:
                logging.warning(f"action: load_records | result: extra_lines_ignored | file:{path} | line:{line_no}")
                break
            try:
                records.append(SalesRecord.from_input_line(line))
            except ValueError as e:
                raise MalformedRecordSourceError(f"{os.path.basename(path)}:{line_no}: {e}") from e

        if len(records) != num_records:
            raise MalformedRecordSourceError(
                f"{os.path.basename(path)}: header announces {num_records} records, found {len(records)}"
            )

        logging.info(f"action: load_records | result: success | file:{path} | records:{num_records} | categories:{category_count}")
        return cls(records, category_count, path)

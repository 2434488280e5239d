from dataclasses import dataclass

ABORT_CATEGORY_COUNT = -1
_PREFIX = "PARAMS"


@dataclass(frozen=True)
class RunParameters:
    """
    Parametros de la corrida, difundidos a todos los workers antes de los chunks.

    Un category_count negativo es el marcador de asignacion invalida: el
    coordinador lo difunde cuando la configuracion falla y el worker debe
    terminar sin tocar datos.
    """
    category_count: int
    report_period: int
    report_customer_class: str

    @classmethod
    def aborted(cls) -> "RunParameters":
        return cls(ABORT_CATEGORY_COUNT, 0, "-")

    @property
    def is_abort(self) -> bool:
        return self.category_count < 0

    def encode(self) -> bytes:
        """
        Serializa con el formato:
        b"PARAMS;{category_count};{report_period};{report_customer_class}"
        """
        return f"{_PREFIX};{self.category_count};{self.report_period};{self.report_customer_class}".encode("utf-8")

    @classmethod
    def decode(cls, message: bytes) -> "RunParameters":
        decoded = message.decode("utf-8")
        parts = decoded.split(";")
        if len(parts) != 4 or parts[0] != _PREFIX:
            raise ValueError(f"Formato inválido de mensaje PARAMS: {decoded}")

        _, category_count, report_period, report_customer_class = parts
        return cls(int(category_count), int(report_period), report_customer_class)

class EnvelopeHeader:
    HEADER_SIZE = 12  # 4 bytes sender_id + 4 bytes tag + 4 bytes size

    def __init__(self, sender_id: int, tag: int, size: int = 0):
        self.sender_id = sender_id
        self.tag = tag
        self.size = size

    def serialize(self) -> bytes:
        # 3 enteros de 4 bytes (big-endian)
        return (
                self.sender_id.to_bytes(4, byteorder="big") +
                self.tag.to_bytes(4, byteorder="big") +
                self.size.to_bytes(4, byteorder="big")
        )

    @staticmethod
    def deserialize(data: bytes):
        if len(data) < EnvelopeHeader.HEADER_SIZE:
            raise ValueError(f"Envelope header truncado: {len(data)} bytes")
        sender_id = int.from_bytes(data[0:4], byteorder="big")
        tag = int.from_bytes(data[4:8], byteorder="big")
        size = int.from_bytes(data[8:12], byteorder="big")
        return EnvelopeHeader(sender_id, tag, size)


# =========================================
# ENVELOPE
# - Todo mensaje viaja con la identidad del emisor y un tag,
#   independientes del payload.
# =========================================
class Envelope:
    def __init__(self, sender_id: int, tag: int, payload: bytes = b""):
        self.header = EnvelopeHeader(sender_id, tag, len(payload))
        self.payload = payload

    @property
    def sender_id(self) -> int:
        return self.header.sender_id

    @property
    def tag(self) -> int:
        return self.header.tag

    def serialize(self) -> bytes:
        return self.header.serialize() + self.payload

    @staticmethod
    def deserialize(data: bytes) -> "Envelope":
        header = EnvelopeHeader.deserialize(data[:EnvelopeHeader.HEADER_SIZE])
        payload = data[EnvelopeHeader.HEADER_SIZE:]
        if len(payload) != header.size:
            raise ValueError(f"Envelope payload de {len(payload)} bytes, header anuncia {header.size}")
        return Envelope(header.sender_id, header.tag, payload)

    def __repr__(self):
        return f"Envelope(sender_id={self.sender_id}, tag={self.tag}, size={self.header.size})"

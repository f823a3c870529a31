"""Protocol interfaces for opensea_stream components."""

from opensea_stream.interfaces.transport import PhoenixTransport

__all__ = ["PhoenixTransport"]

"""Phoenix channel transport over aiohttp websockets."""

from opensea_stream.phoenix.socket import AiohttpPhoenixTransport

__all__ = ["AiohttpPhoenixTransport"]

"""On-premise deployment package assembler."""

__version__ = "0.1.0"

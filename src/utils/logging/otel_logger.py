import logging
import os
from typing import Dict, Optional

from pythonjsonlogger import jsonlogger

SERVICE_NAME: str = "faasr-backend"
SERVICE_VERSION: str = "1.0.0"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_LOGGERS: Dict[str, logging.Logger] = {}


def _json_stream_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            LOG_FORMAT,
            rename_fields={"levelname": "level", "asctime": "timestamp"},
        )
    )
    return handler


def _otel_handler(endpoint: str) -> logging.Handler:
    """
    Handler shipping records to an OTLP collector.

    Requires the `otel` extra (opentelemetry-sdk and the gRPC exporter).
    """
    from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
    from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
    from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
    from opentelemetry.sdk.resources import Resource

    provider = LoggerProvider(
        Resource.create(
            {
                "service.name": SERVICE_NAME,
                "service.version": SERVICE_VERSION,
                "deployment.environment": os.getenv("ENV", "development"),
                "host.name": os.getenv("DOMAIN_NAME", "ENV_NOT_SET"),
            }
        )
    )
    insecure = os.getenv("OTEL_EXPORTER_OTLP_INSECURE", "true").lower() == "true"
    provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=endpoint, insecure=insecure))
    )
    return LoggingHandler(level=logging.DEBUG, logger_provider=provider)


def get_logger(name: str) -> logging.Logger:
    """
    Return the named JSON logger, creating and caching it on first use.

    Level comes from LOG_LEVEL (default DEBUG). When
    OTEL_EXPORTER_OTLP_ENDPOINT is set, records are also exported over OTLP.
    """
    if name in _LOGGERS:
        return _LOGGERS[name]

    named_logger = logging.getLogger(name)
    named_logger.setLevel(os.getenv("LOG_LEVEL", "DEBUG").upper())
    named_logger.addHandler(_json_stream_handler())
    _LOGGERS[name] = named_logger

    endpoint: Optional[str] = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        try:
            named_logger.addHandler(_otel_handler(endpoint))
            named_logger.info(f"OTLP log export enabled for '{name}'")
        except Exception as e:
            named_logger.error(f"Could not enable OTLP log export for '{name}': {e}")

    return named_logger


logger = get_logger(SERVICE_NAME)

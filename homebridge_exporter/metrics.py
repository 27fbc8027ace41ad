"""Translation of Homebridge accessories into Prometheus gauges.

A fresh ``CollectorRegistry`` is built for every scrape, so no metric
identity survives between requests.  Each numeric characteristic becomes
one sample of a gauge family named after its service and characteristic
types, labelled with the owning service's name.
"""

from __future__ import annotations

import re
from typing import Iterable

import structlog
from prometheus_client import CollectorRegistry, Gauge
from prometheus_client.openmetrics.exposition import generate_latest

from homebridge_exporter.models import AccessoryRecord, CharacteristicValue

logger = structlog.get_logger(__name__)

OPENMETRICS_CONTENT_TYPE = "application/openmetrics-text; version=1.0.0; charset=utf-8"

# Characteristics with this format carry text and are never exported.
STRING_FORMAT = "string"

NAME_LABEL = "name"

_HUMP = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_SEPARATORS = re.compile(r"[\W_]+")
_INVALID_METRIC_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def snake_case(text: str) -> str:
    """Convert ``"CurrentTemperature"`` or ``"Living Room"`` to snake case."""
    return _SEPARATORS.sub("_", _HUMP.sub("_", text)).strip("_").lower()


def metric_name(service_type: str, characteristic_type: str) -> str:
    """Build the gauge name for a characteristic, e.g. ``lightbulb_on``.

    Characters that are not allowed in a Prometheus metric name become
    underscores.
    """
    name = f"{snake_case(service_type)}_{snake_case(characteristic_type)}"
    name = _INVALID_METRIC_CHARS.sub("_", name)
    if name[0].isdigit():
        name = f"_{name}"
    return name


def coerce_value(value: CharacteristicValue) -> float:
    """Map a characteristic value onto a gauge sample.

    Numbers are converted as-is and booleans become ``1.0``/``0.0``.
    Strings, ``None``, arrays, objects and anything else yield ``0.0``
    rather than an error, so one odd characteristic never fails a scrape.

    Earlier releases of the exporter read only JSON numbers and exported
    ``0.0`` for every boolean; exporting ``true`` as ``1.0`` is a
    deliberate change.
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return 0.0


def translate(
    accessories: Iterable[AccessoryRecord], prefix: str = ""
) -> CollectorRegistry:
    """Build a registry holding one gauge family per characteristic type.

    Parameters:
        accessories: Accessories as returned by the Homebridge API.
        prefix: Namespace prepended to every metric name; may be empty.

    Returns:
        A new registry.  When two characteristics produce the same metric
        name and ``name`` label the last one wins; the help text of a
        family is the description of the first characteristic seen.
    """
    registry = CollectorRegistry()
    gauges: dict[str, Gauge] = {}

    for accessory in accessories:
        for characteristic in accessory.service_characteristics:
            if characteristic.format.lower() == STRING_FORMAT:
                continue

            name = metric_name(
                characteristic.service_type, characteristic.characteristic_type
            )
            gauge = gauges.get(name)
            if gauge is None:
                gauge = Gauge(
                    name,
                    characteristic.description,
                    [NAME_LABEL],
                    namespace=prefix,
                    registry=registry,
                )
                gauges[name] = gauge

            service_name = characteristic.service_name or accessory.service_name
            gauge.labels(snake_case(service_name)).set(
                coerce_value(characteristic.value)
            )

    logger.debug("registry_built", families=len(gauges))
    return registry


def encode(registry: CollectorRegistry) -> bytes:
    """Render *registry* in the OpenMetrics text format."""
    return generate_latest(registry)

"""Backend factory keyed on descriptor type."""

from __future__ import annotations

from stitch.backends.base import SearchBackend
from stitch.backends.here import HereBackend
from stitch.backends.pelias import PeliasBackend
from stitch.common.errors import ConfigError
from stitch.common.http import HttpClient
from stitch.common.models import BackendDescriptor

BACKEND_FACTORIES = {
    "PELIAS": PeliasBackend,
    "HERE": HereBackend,
}


def build_backend(descriptor: BackendDescriptor, http_client: HttpClient) -> SearchBackend:
    factory = BACKEND_FACTORIES.get(descriptor.type.upper())
    if factory is None:
        raise ConfigError(f"Unsupported backend type for {descriptor.name}: {descriptor.type}")
    return factory(descriptor, http_client)

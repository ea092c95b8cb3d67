"""Resource sources: external registry client and local YAML catalog."""

from .provider import ResourceProvider
from .registry_client import RegistryError, ResourceRegistryClient
from .service import CatalogService

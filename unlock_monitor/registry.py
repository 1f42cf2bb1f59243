"""Source type registry for the unlock monitor.

Collaborator sources register under the `type` name used in
monitor.yaml; web_app.load_sources() instantiates them by that name.

    @register_source("orientation")
    class OrientationSource(DataSource):
        ...
"""

import logging
from typing import Dict, Optional, Type

logger = logging.getLogger(__name__)

SOURCE_REGISTRY: Dict[str, Type] = {}


def register_source(name: str):
    """Class decorator registering a DataSource subclass by type name.

    Re-registering the same class is harmless (module reloads); a
    different class claiming a taken name is a ValueError.
    """
    def decorator(cls):
        existing = SOURCE_REGISTRY.get(name)
        if existing is not None and existing.__qualname__ != cls.__qualname__:
            raise ValueError(
                f"source type {name!r} already registered to {existing.__name__}"
            )
        SOURCE_REGISTRY[name] = cls
        logger.debug("Registered source type: %s -> %s", name, cls.__name__)
        return cls
    return decorator


def get_source_class(name: str) -> Optional[Type]:
    return SOURCE_REGISTRY.get(name)

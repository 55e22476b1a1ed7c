"""
Service container - builds the repository, artifact and notification services
once and hands them to the API layer.
"""

from dataclasses import dataclass

from .artifacts.cache import ArtifactCache
from .artifacts.service import ArtifactService
from .core import config
from .core.repository import RepositorySet
from .realtime.hub import WebSocketHub
from .realtime.notifier import Notifier
from .realtime.registry import ConnectionRegistry
from .util.logging import logger


@dataclass
class PortalServices:
    repositories: RepositorySet
    cache: ArtifactCache
    artifacts: ArtifactService
    registry: ConnectionRegistry
    notifier: Notifier
    hub: WebSocketHub

    def shutdown(self):
        self.artifacts.shutdown(wait=False)


def build_services(db_path: str = None, cache_dir: str = None, durable_enabled: bool = None,
                   reencode_enabled: bool = None, transport=None, **artifact_options) -> PortalServices:
    """Wire up the services. Unspecified settings come from configuration."""
    db_path = db_path or config.DB_PATH
    durable_enabled = config.DURABLE_STORE_ENABLED if durable_enabled is None else durable_enabled
    reencode_enabled = config.IMAGE_REENCODE_ENABLED if reencode_enabled is None else reencode_enabled

    if durable_enabled:
        try:
            config.ensure_db_directory(db_path)
        except OSError as e:
            logger.warning(f"Cannot prepare durable store directory for {db_path}: {e}")

    for issue in config.validate_generation_config():
        logger.warning(f"Generation config: {issue}")

    hub = WebSocketHub()
    registry = ConnectionRegistry()
    notifier = Notifier(registry, transport if transport is not None else hub)
    cache = ArtifactCache(cache_dir or config.ARTIFACT_CACHE_DIR)
    repositories = RepositorySet.build(db_path, durable_enabled=durable_enabled, notifier=notifier)
    artifacts = ArtifactService(repositories, cache, notifier=notifier,
                                reencode_enabled=reencode_enabled, **artifact_options)
    repositories.attach(invalidator=artifacts)

    logger.log_operation("services.build", "success", {
        "db_path": db_path,
        "durable_enabled": durable_enabled,
        "cache_dir": str(cache.cache_dir),
        "reencode_enabled": reencode_enabled,
    })
    return PortalServices(repositories, cache, artifacts, registry, notifier, hub)

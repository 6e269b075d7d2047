"""Turns a fully downloaded staging directory into a runnable instance.

Writes the instance settings and the component list for the pack's game
version, mod loader and jar-mods. The settings file is written last, so a
staging directory only looks like a finished instance once its component
list is on disk.
"""

import logging
from pathlib import Path
from typing import Sequence, assert_never

from .errors import UnknownLoaderError
from .instance import InstanceSettings, MinecraftInstance
from .models import Loader, LoaderFamily, Manifest

logger = logging.getLogger(__name__)

INSTANCE_TYPE = "OneSix"
MINECRAFT_UID = "net.minecraft"
FORGE_UID = "net.minecraftforge"
FABRIC_LOADER_UID = "net.fabricmc.fabric-loader"


def loader_component_uid(loader: Loader) -> str | None:
    """Component id to register for a loader, or None for a vanilla pack.

    Raises:
        UnknownLoaderError: If the manifest names an unrecognized loader.
    """
    family = loader.family
    if family is LoaderFamily.NONE:
        return None
    elif family is LoaderFamily.FORGE:
        return FORGE_UID
    elif family is LoaderFamily.FABRIC:
        return FABRIC_LOADER_UID
    elif family is LoaderFamily.UNRECOGNIZED:
        raise UnknownLoaderError(loader.raw_kind)
    else:
        assert_never(family)


def assemble(
    manifest: Manifest,
    staging_root: Path,
    jarmod_paths: Sequence[Path],
    instance_name: str,
    instance_icon: str,
) -> MinecraftInstance:
    """Write the instance records for an installed pack.

    Args:
        manifest: Parsed version manifest.
        staging_root: Staging directory holding ``minecraft/`` and the jar-mods.
        jarmod_paths: Downloaded jar-mods, in manifest order.
        instance_name: Display name of the instance.
        instance_icon: Icon key of the instance.

    Returns:
        The assembled instance.

    Raises:
        UnknownLoaderError: If the loader is not recognized. Nothing is
            written in that case.
        OSError: If writing the instance records fails.
    """
    staging_root = Path(staging_root)

    # Resolve the loader first: an unknown loader must not leave records behind.
    loader_uid = loader_component_uid(manifest.loader)

    settings = InstanceSettings(staging_root / "instance.cfg")
    settings.suspend_save()
    settings.register_setting("InstanceType", "Legacy")
    settings.set("InstanceType", INSTANCE_TYPE)

    instance = MinecraftInstance(settings, staging_root)
    components = instance.get_pack_profile()
    components.building_from_scratch()

    components.set_component_version(MINECRAFT_UID, manifest.runtime_id, important=True)
    if loader_uid is not None:
        components.set_component_version(loader_uid, manifest.loader.version, important=True)
    else:
        logger.debug("No loader requested, installing vanilla %s", manifest.runtime_id)

    components.install_jar_mods(jarmod_paths)
    components.save_now()

    instance.set_name(instance_name)
    instance.set_icon_key(instance_icon)
    settings.resume_save()

    logger.info("Assembled instance '%s' at %s", instance_name, staging_root)
    return instance

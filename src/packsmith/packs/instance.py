"""Instance directory records: settings, component list and jar-mod patches.

An assembled instance directory contains:

    instance.cfg        INI settings (InstanceType, name, iconKey, ...)
    mmc-pack.json       ordered component list (game version, loader, jar-mods)
    jarmods/<id>.jar    jar-mods copied out of the staging tree
    patches/<uid>.json  one patch per jar-mod
    minecraft/          game directory (configs, mods, ...)
"""

import configparser
import io
import json
import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)

PACK_FORMAT_VERSION = 1
JARMOD_UID_PREFIX = "org.multimc.jarmod."


def _write_atomic(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` through a temp file and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(path.name + ".tmp")
    with open(temp_path, "w", encoding="utf-8") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
    os.replace(temp_path, path)


class InstanceSettings:
    """INI-backed instance settings (``instance.cfg``).

    Settings must be registered before use. Every ``set()`` writes the file
    unless saving is suspended; ``resume_save()`` writes once and re-enables
    saving.

    Args:
        path: Path of the settings file. Settings start empty; an existing
            file is replaced on the first save.
    """

    SECTION = "General"

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._parser = configparser.ConfigParser(interpolation=None)
        self._parser.optionxform = str  # type: ignore[assignment,method-assign]
        self._defaults: dict[str, str] = {}
        self._suspended = False
        self._parser.add_section(self.SECTION)

    def register_setting(self, name: str, default: str = "") -> None:
        self._defaults[name] = default

    def get(self, name: str) -> str:
        if name not in self._defaults:
            raise KeyError(f"Setting not registered: {name}")
        return self._parser.get(self.SECTION, name, fallback=self._defaults[name])

    def set(self, name: str, value: str) -> None:
        if name not in self._defaults:
            raise KeyError(f"Setting not registered: {name}")
        self._parser.set(self.SECTION, name, value)
        if not self._suspended:
            self.save()

    @property
    def save_suspended(self) -> bool:
        return self._suspended

    def suspend_save(self) -> None:
        self._suspended = True

    def resume_save(self) -> None:
        self._suspended = False
        self.save()

    def save(self) -> None:
        buffer = io.StringIO()
        self._parser.write(buffer)
        _write_atomic(self.path, buffer.getvalue())
        logger.debug("Saved instance settings to %s", self.path)


@dataclass
class Component:
    """One entry of the instance's component list.

    Attributes:
        uid: Component id (e.g. "net.minecraft")
        version: Component version
        important: True if the user may not remove the component
        cached_name: Display name, used for jar-mods
    """

    uid: str
    version: str = ""
    important: bool = False
    cached_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"uid": self.uid}
        if self.version:
            data["version"] = self.version
        if self.important:
            data["important"] = True
        if self.cached_name:
            data["cachedName"] = self.cached_name
        return data


class PackProfile:
    """The ordered component list of an instance (``mmc-pack.json``).

    Args:
        instance_root: Instance directory.
    """

    FILENAME = "mmc-pack.json"

    def __init__(self, instance_root: Path) -> None:
        self.instance_root = Path(instance_root)
        self._components: list[Component] = []

    @property
    def path(self) -> Path:
        return self.instance_root / self.FILENAME

    @property
    def components(self) -> list[Component]:
        return list(self._components)

    def get_component(self, uid: str) -> Optional[Component]:
        for component in self._components:
            if component.uid == uid:
                return component
        return None

    def building_from_scratch(self) -> None:
        """Start from an empty component list, ignoring anything on disk."""
        self._components = []

    def set_component_version(self, uid: str, version: str, important: bool = False) -> None:
        """Add a component or change the version of an existing one."""
        component = self.get_component(uid)
        if component is None:
            self._components.append(Component(uid=uid, version=version, important=important))
        else:
            component.version = version
            component.important = component.important or important
        logger.debug("Component %s set to %s (important=%s)", uid, version, important)

    def install_jar_mods(self, jar_paths: Iterable[Path]) -> list[Component]:
        """Register jar files as jar-mod components, in the given order.

        Each jar is copied into ``jarmods/`` under a fresh id and described by
        a patch file in ``patches/``.

        Returns:
            The added components.
        """
        added: list[Component] = []
        jarmods_dir = self.instance_root / "jarmods"
        patches_dir = self.instance_root / "patches"
        for source in jar_paths:
            source = Path(source)
            jar_id = uuid.uuid4().hex
            uid = JARMOD_UID_PREFIX + jar_id
            jarmods_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, jarmods_dir / f"{jar_id}.jar")

            patch = {
                "formatVersion": PACK_FORMAT_VERSION,
                "uid": uid,
                "name": source.name,
                "jarMods": [
                    {
                        "name": f"org.multimc.jarmods:{jar_id}:1",
                        "MMC-filename": f"{jar_id}.jar",
                        "MMC-displayname": source.name,
                        "MMC-hint": "local",
                    }
                ],
            }
            _write_atomic(patches_dir / f"{uid}.json", json.dumps(patch, indent=4))

            component = Component(uid=uid, cached_name=source.name)
            self._components.append(component)
            added.append(component)
            logger.debug("Installed jar-mod %s as %s", source, uid)
        return added

    def save_now(self) -> None:
        """Write the component list to disk."""
        data = {
            "formatVersion": PACK_FORMAT_VERSION,
            "components": [c.to_dict() for c in self._components],
        }
        _write_atomic(self.path, json.dumps(data, indent=4))
        logger.debug("Saved %d components to %s", len(self._components), self.path)


class MinecraftInstance:
    """An instance directory with its settings and component list.

    Args:
        settings: The instance's settings object.
        root: Instance directory.
    """

    def __init__(self, settings: InstanceSettings, root: Path) -> None:
        self.settings = settings
        self.root = Path(root)
        self.settings.register_setting("name", "Unnamed Instance")
        self.settings.register_setting("iconKey", "default")
        self._profile = PackProfile(self.root)

    @property
    def game_root(self) -> Path:
        return self.root / "minecraft"

    def get_pack_profile(self) -> PackProfile:
        return self._profile

    @property
    def name(self) -> str:
        return self.settings.get("name")

    def set_name(self, name: str) -> None:
        self.settings.set("name", name)

    @property
    def icon_key(self) -> str:
        return self.settings.get("iconKey")

    def set_icon_key(self, icon_key: str) -> None:
        self.settings.set("iconKey", icon_key)

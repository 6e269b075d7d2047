"""Unit tests for instance settings and the component list."""

import configparser
import json
from pathlib import Path

import pytest

from packsmith.packs.instance import JARMOD_UID_PREFIX, InstanceSettings, MinecraftInstance, PackProfile


def _read_cfg(path: Path) -> dict[str, str]:
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    parser.read(path, encoding="utf-8")
    return dict(parser["General"])


class TestInstanceSettings:
    def test_set_writes_immediately(self, tmp_path: Path) -> None:
        settings = InstanceSettings(tmp_path / "instance.cfg")
        settings.register_setting("name", "Unnamed")
        settings.set("name", "My Pack")

        assert _read_cfg(tmp_path / "instance.cfg") == {"name": "My Pack"}

    def test_unregistered_setting_rejected(self, tmp_path: Path) -> None:
        settings = InstanceSettings(tmp_path / "instance.cfg")
        with pytest.raises(KeyError):
            settings.set("name", "x")
        with pytest.raises(KeyError):
            settings.get("name")

    def test_default_value(self, tmp_path: Path) -> None:
        settings = InstanceSettings(tmp_path / "instance.cfg")
        settings.register_setting("iconKey", "default")
        assert settings.get("iconKey") == "default"

    def test_suspended_save_defers_write(self, tmp_path: Path) -> None:
        path = tmp_path / "instance.cfg"
        settings = InstanceSettings(path)
        settings.suspend_save()
        settings.register_setting("InstanceType", "Legacy")
        settings.set("InstanceType", "OneSix")

        assert settings.save_suspended
        assert not path.exists()

        settings.resume_save()
        assert not settings.save_suspended
        assert _read_cfg(path) == {"InstanceType": "OneSix"}

    def test_existing_file_is_replaced(self, tmp_path: Path) -> None:
        path = tmp_path / "instance.cfg"
        path.write_text("InstanceType=OneSix\nname=Old\n", encoding="utf-8")

        settings = InstanceSettings(path)
        settings.register_setting("name", "Unnamed")
        assert settings.get("name") == "Unnamed"

        settings.set("name", "New")
        assert _read_cfg(path) == {"name": "New"}

    def test_keys_keep_case(self, tmp_path: Path) -> None:
        settings = InstanceSettings(tmp_path / "instance.cfg")
        settings.register_setting("iconKey")
        settings.set("iconKey", "flame")
        assert "iconKey=flame" in (tmp_path / "instance.cfg").read_text().replace(" = ", "=")


class TestPackProfile:
    def test_save_now_writes_components_in_order(self, tmp_path: Path) -> None:
        profile = PackProfile(tmp_path)
        profile.building_from_scratch()
        profile.set_component_version("net.minecraft", "1.12.2", important=True)
        profile.set_component_version("net.minecraftforge", "14.23.5.2854", important=True)
        profile.save_now()

        data = json.loads((tmp_path / "mmc-pack.json").read_text())
        assert data["formatVersion"] == 1
        assert data["components"] == [
            {"uid": "net.minecraft", "version": "1.12.2", "important": True},
            {"uid": "net.minecraftforge", "version": "14.23.5.2854", "important": True},
        ]

    def test_set_component_version_updates_existing(self, tmp_path: Path) -> None:
        profile = PackProfile(tmp_path)
        profile.set_component_version("net.minecraft", "1.12.1")
        profile.set_component_version("net.minecraft", "1.12.2", important=True)

        assert len(profile.components) == 1
        component = profile.get_component("net.minecraft")
        assert component is not None
        assert component.version == "1.12.2"
        assert component.important

    def test_install_jar_mods(self, tmp_path: Path) -> None:
        staged = tmp_path / "minecraft" / "jarmods"
        staged.mkdir(parents=True)
        jars = []
        for name in ("first.jar", "second.jar"):
            (staged / name).write_bytes(name.encode())
            jars.append(staged / name)

        profile = PackProfile(tmp_path)
        added = profile.install_jar_mods(jars)

        assert [c.cached_name for c in added] == ["first.jar", "second.jar"]
        for component, source in zip(added, jars):
            assert component.uid.startswith(JARMOD_UID_PREFIX)
            jar_id = component.uid[len(JARMOD_UID_PREFIX) :]
            assert (tmp_path / "jarmods" / f"{jar_id}.jar").read_bytes() == source.read_bytes()

            patch = json.loads((tmp_path / "patches" / f"{component.uid}.json").read_text())
            assert patch["uid"] == component.uid
            assert patch["jarMods"][0]["MMC-filename"] == f"{jar_id}.jar"
            assert patch["jarMods"][0]["MMC-displayname"] == source.name

    def test_building_from_scratch_ignores_disk(self, tmp_path: Path) -> None:
        (tmp_path / "mmc-pack.json").write_text(json.dumps({"formatVersion": 1, "components": [{"uid": "old"}]}))
        profile = PackProfile(tmp_path)
        profile.building_from_scratch()
        profile.save_now()

        assert json.loads((tmp_path / "mmc-pack.json").read_text())["components"] == []


class TestMinecraftInstance:
    def test_name_and_icon(self, tmp_path: Path) -> None:
        instance = MinecraftInstance(InstanceSettings(tmp_path / "instance.cfg"), tmp_path)
        assert instance.name == "Unnamed Instance"
        assert instance.icon_key == "default"

        instance.set_name("Sky Factory")
        instance.set_icon_key("flame")

        assert instance.name == "Sky Factory"
        assert instance.icon_key == "flame"
        assert instance.game_root == tmp_path / "minecraft"
        assert _read_cfg(tmp_path / "instance.cfg") == {"name": "Sky Factory", "iconKey": "flame"}

"""Version manifest parsing.

A pack version is described by an XML document served as ``Configs.xml``:

    <version>
      <pack>
        <version>1.0.4</version>
        <minecraft>1.12.2</minecraft>
      </pack>
      <loader type="forge" version="14.23.5.2854"/>
      <mods>
        <mod name="JEI" url="mods/jei.jar" file="jei.jar" download="server" type="mods"/>
      </mods>
    </version>

Parsing is strict about document structure and lenient about values: an
unrecognized ``type`` or ``download`` label becomes UNKNOWN with the raw label
kept, so the pipeline can report it precisely when (and only if) it matters.
"""

import logging

from lxml import etree

from .errors import ManifestParseError
from .models import AssetDescriptor, AssetKind, DownloadMode, Loader, Manifest

logger = logging.getLogger(__name__)


def _make_parser() -> etree.XMLParser:
    # The document comes from a remote server: no entity expansion, no network.
    return etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False, recover=False)


def _text(element: etree._Element | None) -> str:
    if element is None or element.text is None:
        return ""
    return element.text.strip()


def _parse_asset(element: etree._Element) -> AssetDescriptor:
    raw_kind = element.get("type", "")
    raw_download = element.get("download", "")
    return AssetDescriptor(
        name=element.get("name", ""),
        kind=AssetKind.from_label(raw_kind),
        raw_kind=raw_kind,
        file_name=element.get("file", ""),
        download_mode=DownloadMode.from_label(raw_download),
        raw_download=raw_download,
        source_url=element.get("url", ""),
    )


def parse_manifest(raw: bytes) -> Manifest:
    """Parse a version manifest document.

    Args:
        raw: Document bytes as downloaded.

    Returns:
        The parsed Manifest. Parsing the same bytes twice gives equal values.

    Raises:
        ManifestParseError: If the document is not well-formed XML, or lacks
            the ``<version>`` root or the ``<pack><minecraft>`` element.
    """
    if not raw or not raw.strip():
        raise ManifestParseError("Document is empty", 1, 1)

    try:
        root = etree.fromstring(raw, _make_parser())
    except etree.XMLSyntaxError as e:
        line, column = e.position if e.position else (e.lineno or -1, -1)
        raise ManifestParseError(e.msg or str(e), line, column) from e

    if root.tag != "version":
        raise ManifestParseError(f"Expected <version> root element, found <{root.tag}>", root.sourceline or -1, 0)

    pack = root.find("pack")
    if pack is None:
        raise ManifestParseError("Missing <pack> element", root.sourceline or -1, 0)
    runtime_id = _text(pack.find("minecraft"))
    if not runtime_id:
        raise ManifestParseError("Missing <minecraft> version in <pack>", pack.sourceline or -1, 0)

    loader_element = root.find("loader")
    if loader_element is None:
        loader_element = root.find("loaders/loader")
    if loader_element is None:
        loader = Loader()
    else:
        loader = Loader.from_labels(loader_element.get("type", ""), loader_element.get("version", ""))

    assets: list[AssetDescriptor] = []
    mods = root.find("mods")
    if mods is not None:
        assets = [_parse_asset(element) for element in mods.iterfind("mod")]

    manifest = Manifest(
        runtime_id=runtime_id,
        loader=loader,
        assets=tuple(assets),
        pack_version=_text(pack.find("version")),
    )
    logger.debug(
        "Parsed manifest: minecraft %s, loader %s %s, %d assets",
        manifest.runtime_id,
        manifest.loader.family.value,
        manifest.loader.version,
        len(manifest.assets),
    )
    return manifest

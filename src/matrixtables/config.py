"""
Configuration & Format Constants
================================
This module serves as the central registry for the constants shared by the
text codec and the MAT-file adapter.

Why is this file needed?
------------------------
1. Abstraction: It prevents magic numbers (buffer sizes, name limits, version
   tags) scattered throughout the code.
2. Write profiles: It maps the public MAT-file version tags ("4", "6", "7",
   "7.3") to the on-disk format and compression used by the writers.

Exports:
    LINE_BUFFER_LENGTH (int): Initial capacity of the text line buffer.
    NAME_LENGTH_MAX (int): Display bound for variable names in diagnostics.
    MAT_EXTENSIONS (tuple): File extensions routed to the MAT-file reader.
    WRITE_PROFILES (dict): Version tag -> WriteProfile.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Dict

from matrixtables.errors import VersionError

logger = logging.getLogger(__name__)

# Text tables
LINE_BUFFER_LENGTH: int = 64
TEXT_ENCODING: str = "latin-1"
TEXT_FORMAT_TAG: str = "#1"

# MAT-files
NAME_LENGTH_MAX: int = 64
MAT_EXTENSIONS: tuple[str, ...] = (".mat",)


@dataclass(frozen=True)
class WriteProfile:
    """
    On-disk layout selected by a version tag.

    Attributes:
        tag: Public version tag as passed by the caller.
        file_format: "4" and "5" are written by scipy.io, "7.3" by h5py.
        compress: Whether the variable data is zlib/gzip compressed.
    """
    tag: str
    file_format: str
    compress: bool

    @property
    def is_hdf5(self) -> bool:
        return self.file_format == "7.3"


WRITE_PROFILES: Dict[str, WriteProfile] = {
    "4": WriteProfile(tag="4", file_format="4", compress=False),
    "6": WriteProfile(tag="6", file_format="5", compress=False),
    "7": WriteProfile(tag="7", file_format="5", compress=True),
    "7.3": WriteProfile(tag="7.3", file_format="7.3", compress=True),
}

DEFAULT_VERSION: str = "4"


def get_version_profile(version: str, file_name: str = "") -> WriteProfile:
    """
    Look up the write profile of a version tag.

    Raises:
        VersionError: If the tag is not one of WRITE_PROFILES.
    """
    try:
        return WRITE_PROFILES[version]
    except (KeyError, TypeError):
        msg = f'Invalid version {version} for file "{file_name}"'
        logger.error(msg)
        raise VersionError(msg) from None

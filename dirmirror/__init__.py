"""Dir Mirror: periodic one-way mirroring of a folder tree.

Makes a destination folder an eventually-consistent replica of a source
folder: missing files and folders are created, extra ones are removed,
and files whose content differs are overwritten.
"""

__version__ = "1.0.0"
__app_name__ = "Dir Mirror"

"""File sources feeding the deployment pipeline."""

import os
from pathlib import Path
from typing import Iterator, Union

from file_uploader.models import FileDescriptor


def iter_directory(root: Union[str, Path]) -> Iterator[FileDescriptor]:
    """
    Yield a descriptor for every regular file below root.

    Names are relative to root with "/" separators, in sorted order so runs
    are reproducible. A missing root is reported immediately, not on first
    iteration.
    """
    root = Path(root)
    if not root.is_dir():
        raise NotADirectoryError(f"Source directory not found: {root}")
    return _walk(root)


def _walk(root: Path) -> Iterator[FileDescriptor]:
    for directory, subdirectories, files in os.walk(root):
        subdirectories.sort()
        for file_name in sorted(files):
            path = Path(directory) / file_name
            if not path.is_file():
                continue
            yield FileDescriptor(path=str(path), name=path.relative_to(root).as_posix())

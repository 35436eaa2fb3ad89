import logging
import os
from typing import List, Sequence

from filelock import FileLock

from .storage import GcsBlobStore

logger = logging.getLogger(__name__)


def lock_path(output_dir: str) -> str:
    """Lock file beside the output directory, never inside it."""
    return os.path.normpath(os.path.abspath(output_dir)) + ".lock"


class ArtifactDownloader:
    def __init__(self, store: GcsBlobStore):
        self.store = store

    def download(self, result_storage: str, output_dir: str, file_list: Sequence[str] = ()) -> List[str]:
        """Fetch the whole result tree, or only the named files from every device folder."""
        os.makedirs(output_dir, exist_ok=True)
        result_storage = result_storage.rstrip("/")

        with FileLock(lock_path(output_dir)):
            if not file_list:
                logger.info(f"Downloading test results from {result_storage} to {output_dir}")
                return self.store.download_tree(result_storage, output_dir)

            downloaded = []
            for folder in self.store.list_folders(result_storage):
                for filename in file_list:
                    target = os.path.join(output_dir, folder, filename)
                    logger.info(f"Download file '{filename}' from '{folder}' to '{target}'")
                    downloaded.append(self.store.download_file(f"{result_storage}/{folder}/{filename}", target))
            return downloaded

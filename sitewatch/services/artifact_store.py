"""
Artifact Store Service.

Stores generated files on a Django FileSystemStorage rooted at
SITEWATCH_ARTIFACT_ROOT. Every generation gets its own directory; the
directory path ("generated/<job_id>") is the generation's output
reference.
"""

import logging
from typing import Dict, Optional

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import FileSystemStorage

logger = logging.getLogger(__name__)


ARTIFACT_PREFIX = "generated"


class ArtifactStore:
    """File storage for generated llms.txt artifacts."""

    def __init__(self, storage: Optional[FileSystemStorage] = None):
        self.storage = storage or FileSystemStorage(
            location=getattr(settings, "SITEWATCH_ARTIFACT_ROOT", "data")
        )

    @staticmethod
    def reference_for(job_id) -> str:
        return f"{ARTIFACT_PREFIX}/{job_id}"

    def write(self, job_id, files: Dict[str, str]) -> str:
        """
        Write a generation's files.

        Existing files with the same names are replaced.

        Args:
            job_id: Generation job id
            files: Mapping of file name to text content

        Returns:
            The output reference
        """
        reference = self.reference_for(job_id)
        for name, content in files.items():
            path = f"{reference}/{name}"
            if self.storage.exists(path):
                self.storage.delete(path)
            self.storage.save(path, ContentFile(content.encode("utf-8")))

        logger.info(f"Wrote {len(files)} artifacts to {reference}")
        return reference

    def read(self, reference: str, name: str) -> str:
        """
        Read one file of a generation.

        Raises:
            FileNotFoundError: if the artifact does not exist
        """
        path = f"{reference}/{name}"
        if not reference or not self.storage.exists(path):
            raise FileNotFoundError(path)

        with self.storage.open(path, "rb") as handle:
            return handle.read().decode("utf-8")

    def exists(self, reference: str, name: Optional[str] = None) -> bool:
        if not reference:
            return False
        path = f"{reference}/{name}" if name else reference
        return self.storage.exists(path)

    def remove(self, reference: str):
        """Delete all files of a generation. Missing artifacts are ignored."""
        if not reference or not self.storage.exists(reference):
            return

        _, file_names = self.storage.listdir(reference)
        for name in file_names:
            self.storage.delete(f"{reference}/{name}")

        # FileSystemStorage.delete removes empty directories as well
        self.storage.delete(reference)
        logger.info(f"Removed artifacts at {reference}")

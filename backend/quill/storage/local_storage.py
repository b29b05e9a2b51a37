import uuid
from pathlib import Path
from typing import Optional

from quill.core.config import settings


class CoverStorage:
    """
    Cover images on local disk.

    Files live directly in upload_dir and are named "<slug>-<random suffix><ext>".
    Slugs can be reused after a rename; cover file names never are.
    Posts store the public path ("/<upload dir name>/<filename>"), never the
    absolute disk path.
    """

    def __init__(self, upload_dir: str):
        self.upload_dir = Path(upload_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    @property
    def public_prefix(self) -> str:
        return f"/{self.upload_dir.name}"

    def save_cover(self, content: bytes, original_filename: str, slug: str) -> str:
        """Write cover bytes and return the public path"""
        extension = Path(original_filename).suffix.lower()
        filename = f"{slug}-{uuid.uuid4().hex[:8]}{extension}"
        file_path = self.upload_dir / filename

        with open(file_path, "wb") as f:
            f.write(content)

        return f"{self.public_prefix}/{filename}"

    def get_file_path(self, public_path: str) -> Optional[Path]:
        """Resolve a stored public path back to a file inside upload_dir"""
        if not public_path:
            return None
        # Only the last component is used so a stored path can't escape upload_dir
        return self.upload_dir / Path(public_path).name

    def delete_cover(self, public_path: str) -> bool:
        file_path = self.get_file_path(public_path)
        if file_path is not None and file_path.exists():
            file_path.unlink()
            return True
        return False

    def list_covers(self) -> list[str]:
        """Public paths of every file currently in upload_dir"""
        return [
            f"{self.public_prefix}/{path.name}"
            for path in self.upload_dir.iterdir()
            if path.is_file()
        ]


storage = CoverStorage(settings.UPLOAD_DIR)

"""
Cache disque des images de roue déjà rendues.

Les images sont produites ailleurs (rendu hors périmètre); ce dépôt ne fait que stocker des octets
sous `{file_id}.{format}` et permettre à un thème d'y faire référence (`ChartImageRef`).
"""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from natal_backend.domain.errors import ConfigurationError, PersistenceError

IMAGE_FORMATS = ("svg", "png")
_FILE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class ImageCache:
    """Stocke les images de thèmes dans un répertoire local."""

    def __init__(self, root: str | Path):
        """Le répertoire est créé à la première écriture."""
        self.root = Path(root)
        self._log = structlog.get_logger(__name__).bind(component="image_cache")

    def _path(self, file_id: str, fmt: str) -> Path:
        if fmt not in IMAGE_FORMATS:
            raise ConfigurationError("image format", fmt)
        if not _FILE_ID_RE.match(file_id):
            raise ValueError(f"invalid image file id: {file_id!r}")
        return self.root / f"{file_id}.{fmt}"

    def save_image(self, data: bytes, file_id: str, fmt: str = "svg") -> Path:
        """Écrit (ou remplace) l'image et retourne son chemin."""
        path = self._path(file_id, fmt)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            tmp.write_bytes(data)
            tmp.replace(path)
        except OSError as err:
            raise PersistenceError(f"cannot write image {path.name}: {err}") from err
        self._log.info("image_saved", file_id=file_id, format=fmt, size=len(data))
        return path

    def load_image(self, file_id: str, fmt: str = "svg") -> bytes:
        """Lit une image; `KeyError` si elle n'est pas en cache."""
        path = self._path(file_id, fmt)
        if not path.is_file():
            raise KeyError("image_not_found")
        try:
            return path.read_bytes()
        except OSError as err:
            raise PersistenceError(f"cannot read image {path.name}: {err}") from err

    def delete_image(self, file_id: str, fmt: str = "svg") -> bool:
        """Supprime une image; retourne False si elle était absente."""
        path = self._path(file_id, fmt)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as err:
            raise PersistenceError(f"cannot delete image {path.name}: {err}") from err
        return True

    def image_exists(self, file_id: str, fmt: str = "svg") -> bool:
        """Vrai si l'image est présente."""
        return self._path(file_id, fmt).is_file()

    def list_images(self) -> list[str]:
        """Noms de fichiers des images en cache, triés."""
        if not self.root.is_dir():
            return []
        return sorted(
            p.name
            for p in self.root.iterdir()
            if p.is_file() and p.suffix.lstrip(".") in IMAGE_FORMATS
        )

    def cache_size(self) -> int:
        """Taille totale des images, en octets."""
        return sum((self.root / name).stat().st_size for name in self.list_images())

    def clear(self) -> int:
        """Supprime toutes les images et retourne leur nombre."""
        names = self.list_images()
        for name in names:
            (self.root / name).unlink(missing_ok=True)
        self._log.info("image_cache_cleared", count=len(names))
        return len(names)

"""
Endpoint de santé pour vérifier la disponibilité de l'API et du backend.

Expose `/health` pour signaler l'état général de l'application, du stockage du cache et du
fournisseur d'éphémérides configuré.
"""


from fastapi import APIRouter

from natal_backend.core.container import container

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Vérifie la disponibilité de l'API, le backend de stockage et le fournisseur."""
    return {
        "status": "ok",
        "storage": getattr(container, "storage_backend", "unknown"),
        "provider": container.provider.name,
        "image_cache_bytes": container.chart_service.image_cache_size(),
    }

"""
Routes liées au calcul et à la consultation des thèmes natals.

Ce module regroupe les endpoints `/charts` pour générer un thème (avec cache tolérant), le
retrouver par identifiant, évincer les thèmes périmés et attacher/lire une image de roue
déjà rendue.
"""

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import Response

from natal_backend.api.schemas import EvictRequest, EvictResponse, NatalChartRequest
from natal_backend.core.container import container
from natal_backend.domain.entities import NatalChart

router = APIRouter(prefix="/charts", tags=["charts"])

_MEDIA_TYPES = {"svg": "image/svg+xml", "png": "image/png"}


def _load_or_404(chart_id: str) -> NatalChart:
    try:
        return container.chart_service.get_chart(chart_id)
    except KeyError as err:
        raise HTTPException(status_code=404, detail="Chart not found") from err


@router.post("/natal", response_model=NatalChart)
def create_natal(payload: NatalChartRequest):
    """
    Génère (ou sert depuis le cache) le thème natal des données fournies.

    Paramètres:
    - payload: `NatalChartRequest` (données de naissance, système de maisons, force_refresh).

    Retour: `NatalChart` complet (corps, maisons, aspects classés, maîtres de maisons).
    """
    house_system = payload.house_system or container.default_house_system
    return container.chart_service.generate_chart(
        payload.to_birth_data(), house_system, force_refresh=payload.force_refresh
    )


@router.get("/{chart_id}", response_model=NatalChart)
def get_chart(chart_id: str):
    """Récupère un thème en cache par identifiant, sinon 404."""
    return _load_or_404(chart_id)


@router.post("/evict", response_model=EvictResponse)
def evict_stale(payload: EvictRequest | None = None):
    """Supprime les thèmes plus vieux que l'âge maximal du cache."""
    reference_time = payload.reference_time if payload else None
    return EvictResponse(evicted=container.chart_service.clear_old_charts(reference_time))


@router.put("/{chart_id}/image", response_model=NatalChart)
async def put_chart_image(
    chart_id: str, request: Request, fmt: str = Query("svg", alias="format")
):
    """Attache une image de roue (corps brut de la requête) au thème."""
    chart = _load_or_404(chart_id)
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Empty image body")
    return container.chart_service.attach_image(chart, data, fmt)


@router.get("/{chart_id}/image")
def get_chart_image(chart_id: str):
    """Renvoie l'image de roue attachée au thème, sinon 404."""
    chart = _load_or_404(chart_id)
    try:
        data = container.chart_service.load_chart_image(chart)
    except KeyError as err:
        raise HTTPException(status_code=404, detail="Image not found") from err
    return Response(content=data, media_type=_MEDIA_TYPES[chart.image.format])

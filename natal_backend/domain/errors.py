"""Taxonomie des erreurs du domaine des thèmes natals.

Chaque erreur est typée pour que l'appelant (service, API) décide de sa propagation:
- `ConfigurationError` et `MissingCoordinateError` sont fatales pour la requête courante.
- `MappingError` empêche la production du thème (rien n'est mis en cache).
- `PersistenceError` concerne uniquement la sérialisation et le stockage.
- `ProviderUnavailableError` signale l'absence de données côté fournisseur.
"""

from __future__ import annotations


class NatalChartError(Exception):
    """Erreur de base pour tout le domaine des thèmes natals."""


class ConfigurationError(NatalChartError):
    """Paramètre de calcul non supporté (système de maisons, fuseau, schéma de maîtrises)."""

    def __init__(self, setting: str, value: object) -> None:
        self.setting = setting
        self.value = value
        super().__init__(f"unsupported {setting}: {value!r}")


class MissingCoordinateError(NatalChartError):
    """Coordonnées absentes alors que le fournisseur les exige."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"provider {provider!r} requires a birth coordinate")


class MappingError(NatalChartError):
    """Réponse fournisseur incomplète ou mal formée.

    Attributs
    - field: chemin du champ fautif (ex. `houses`, `bodies[Sun].longitude`).
    """

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class PersistenceError(NatalChartError):
    """Échec de sérialisation ou de la couche de stockage du cache."""


class ProviderUnavailableError(NatalChartError):
    """Le fournisseur d'éphémérides n'a renvoyé aucune donnée exploitable."""

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider}: {reason}")

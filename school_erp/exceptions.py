"""
Exceptions métier du module présences.

Les services lèvent ces exceptions ; les routers les traduisent en codes HTTP.
Aucune n'est rejouée automatiquement.
"""


class SchoolERPError(Exception):
    """Classe de base des erreurs métier."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SchoolERPError):
    """Date mal formée, champ obligatoire manquant, statut hors énumération, élève hors effectif."""

    status_code = 400


class NotFoundError(SchoolERPError):
    status_code = 404


class NoRosterFound(NotFoundError):
    """Aucun élève inscrit pour la classe/section demandée."""

    # Contrat historique de POST /mark : un effectif vide est une requête invalide
    status_code = 400


class ConflictError(SchoolERPError):
    """Doublon (élève, jour) détecté par l'index unique lors du commit."""

    status_code = 409


class StoreError(SchoolERPError):
    """Échec de la couche de persistance."""

    status_code = 500

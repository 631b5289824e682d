"""
Services métier pour les référentiels RNCP.

Contient :
- import_referentiel : import JSON idempotent (validation JSON Schema)
- ReferentielService : CRUD, arbre, marketplace, fork d'un référentiel
  global, remplacement de la structure d'un bloc

Un CFA voit ses propres référentiels et les référentiels globaux publics ;
il ne modifie que les siens.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from app.models.referentiel.referentiel import (
    BlocCompetence,
    Competence,
    Indicateur,
    Referentiel,
)
from app.models.user.user import User
from app.services.validation import get_schema_validator

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ReferentielNotFoundError(Exception):
    """Référentiel non trouvé ou non visible."""
    pass


class ReferentielReadOnlyError(Exception):
    """Référentiel global ou d'un autre CFA : modification interdite."""
    pass


class DuplicateReferentielError(Exception):
    """Un référentiel avec ce code RNCP existe déjà dans le CFA."""
    pass


class BlocNotFoundError(Exception):
    """Bloc de compétences non trouvé."""
    pass


class ImportPermissionError(Exception):
    """Rôle non autorisé à importer un référentiel."""
    pass


def _tree_options():
    return selectinload(Referentiel.blocs).selectinload(
        BlocCompetence.competences
    ).selectinload(Competence.indicateurs)


# =============================================================================
# IMPORT RNCP
# =============================================================================

def import_target(user: User, requested_tenant_id: Optional[int] = None) -> Tuple[Optional[int], bool]:
    """
    Détermine la cible d'un import.

    - super_admin : tenant demandé, ou global (tenant NULL) par défaut
    - admin : son propre tenant, jamais global
    - autres rôles : refusé
    """
    if user.is_super_admin:
        return requested_tenant_id, requested_tenant_id is None
    if user.is_admin and user.tenant_id:
        return user.tenant_id, False
    raise ImportPermissionError("Import réservé aux administrateurs")


def import_referentiel(
        db: Session,
        data: Dict[str, Any],
        tenant_id: Optional[int],
        is_global: bool,
) -> Referentiel:
    """
    Import idempotent d'un référentiel RNCP.

    Upsert par (tenant, code) → (référentiel, titre du bloc) →
    (bloc, description de compétence) ; un indicateur est créé s'il
    n'existe pas encore (même libellé). Tout ou rien.

    Raises:
        SchemaValidationError: Document invalide
    """
    get_schema_validator().validate_full("rncp_import", "v1", data)

    try:
        referentiel = db.execute(
            select(Referentiel).where(
                Referentiel.tenant_id.is_(None) if tenant_id is None else Referentiel.tenant_id == tenant_id,
                Referentiel.code_rncp == data["code_rncp"],
            )
        ).scalar_one_or_none()

        if referentiel is None:
            referentiel = Referentiel(
                tenant_id=tenant_id,
                is_global=is_global,
                code_rncp=data["code_rncp"],
                title=data["title"],
            )
            db.add(referentiel)
            db.flush()
        else:
            referentiel.title = data["title"]

        created = 0
        for order, bloc_data in enumerate(data["blocs"]):
            bloc = db.execute(
                select(BlocCompetence).where(
                    BlocCompetence.referentiel_id == referentiel.id,
                    BlocCompetence.title == bloc_data["title"],
                )
            ).scalar_one_or_none()
            if bloc is None:
                bloc = BlocCompetence(
                    referentiel_id=referentiel.id,
                    title=bloc_data["title"],
                    order_index=order,
                )
                db.add(bloc)
                db.flush()

            for comp_data in bloc_data["competences"]:
                competence = db.execute(
                    select(Competence).where(
                        Competence.bloc_id == bloc.id,
                        Competence.description == comp_data["description"],
                    )
                ).scalar_one_or_none()
                if competence is None:
                    competence = Competence(bloc_id=bloc.id, description=comp_data["description"])
                    db.add(competence)
                    db.flush()
                    created += 1

                for ind_data in comp_data.get("indicateurs") or []:
                    exists = db.execute(
                        select(Indicateur.id).where(
                            Indicateur.competence_id == competence.id,
                            Indicateur.description == ind_data["label"],
                        )
                    ).first()
                    if exists is None:
                        db.add(Indicateur(competence_id=competence.id, description=ind_data["label"]))

        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"❌ Import du référentiel {data.get('code_rncp')} annulé")
        raise

    db.refresh(referentiel)
    logger.info(
        f"📦 Référentiel {referentiel.code_rncp} importé "
        f"({'global' if is_global else f'tenant {tenant_id}'}, {created} nouvelle(s) compétence(s))"
    )
    return referentiel


# =============================================================================
# REFERENTIEL SERVICE
# =============================================================================

class ReferentielService:
    """
    Référentiels visibles par un CFA.

    tenant_id None : super-admin (bibliothèque globale uniquement).
    """

    def __init__(self, db: Session, tenant_id: Optional[int]):
        self.db = db
        self.tenant_id = tenant_id

    def _visible_query(self):
        global_public = (Referentiel.is_global.is_(True)) & (Referentiel.is_public.is_(True))
        if self.tenant_id is None:
            return select(Referentiel).where(Referentiel.is_global.is_(True))
        return select(Referentiel).where(or_(Referentiel.tenant_id == self.tenant_id, global_public))

    def list_referentiels(
            self,
            page: int = 1,
            size: int = 20,
            search: Optional[str] = None,
            include_global: bool = True,
    ) -> Tuple[List[Referentiel], int]:
        query = self._visible_query()
        if not include_global and self.tenant_id is not None:
            query = query.where(Referentiel.tenant_id == self.tenant_id)
        if search:
            term = f"%{search}%"
            query = query.where(or_(Referentiel.title.ilike(term), Referentiel.code_rncp.ilike(term)))

        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
        items = self.db.execute(
            query.order_by(Referentiel.code_rncp, Referentiel.id)
            .offset((page - 1) * size)
            .limit(size)
        ).scalars().all()
        return list(items), total

    def get_referentiel(self, referentiel_id: int, with_tree: bool = False) -> Referentiel:
        query = self._visible_query().where(Referentiel.id == referentiel_id)
        if with_tree:
            query = query.options(_tree_options())
        referentiel = self.db.execute(query).scalar_one_or_none()
        if not referentiel:
            raise ReferentielNotFoundError(f"Référentiel {referentiel_id} non trouvé")
        return referentiel

    def _get_owned(self, referentiel_id: int) -> Referentiel:
        referentiel = self.get_referentiel(referentiel_id)
        if referentiel.tenant_id != self.tenant_id:
            raise ReferentielReadOnlyError("Référentiel en lecture seule pour ce CFA")
        return referentiel

    def _check_code_free(self, code_rncp: str, exclude_id: Optional[int] = None) -> None:
        query = select(Referentiel.id).where(Referentiel.code_rncp == code_rncp)
        if self.tenant_id is None:
            query = query.where(Referentiel.tenant_id.is_(None))
        else:
            query = query.where(Referentiel.tenant_id == self.tenant_id)
        if exclude_id is not None:
            query = query.where(Referentiel.id != exclude_id)
        if self.db.execute(query).first() is not None:
            raise DuplicateReferentielError(f"Le code {code_rncp} existe déjà")

    def create_referentiel(self, data: Dict[str, Any]) -> Referentiel:
        self._check_code_free(data["code_rncp"])
        referentiel = Referentiel(
            tenant_id=self.tenant_id,
            is_global=self.tenant_id is None,
            code_rncp=data["code_rncp"],
            title=data["title"],
            is_public=data.get("is_public", True),
        )
        for order, bloc_title in enumerate(data.get("blocs") or []):
            referentiel.blocs.append(BlocCompetence(title=bloc_title, order_index=order))
        self.db.add(referentiel)
        self.db.commit()
        self.db.refresh(referentiel)
        return referentiel

    def update_referentiel(self, referentiel_id: int, data: Dict[str, Any]) -> Referentiel:
        referentiel = self._get_owned(referentiel_id)
        if "code_rncp" in data:
            self._check_code_free(data["code_rncp"], exclude_id=referentiel.id)
        for field, value in data.items():
            setattr(referentiel, field, value)
        self.db.commit()
        self.db.refresh(referentiel)
        return referentiel

    def delete_referentiel(self, referentiel_id: int) -> None:
        referentiel = self._get_owned(referentiel_id)
        self.db.delete(referentiel)
        self.db.commit()
        logger.info(f"🗑️ Référentiel {referentiel_id} supprimé")

    # =========================================================================
    # MARKETPLACE ET FORK
    # =========================================================================

    def marketplace(self) -> List[Referentiel]:
        """Référentiels globaux publics, les plus importés d'abord."""
        return list(self.db.execute(
            select(Referentiel)
            .where(Referentiel.is_global.is_(True), Referentiel.is_public.is_(True))
            .order_by(Referentiel.download_count.desc(), Referentiel.title)
        ).scalars().all())

    def fork(self, referentiel_id: int) -> Referentiel:
        """
        Copie profonde d'un référentiel global dans le CFA.

        Raises:
            ReferentielNotFoundError: Référentiel absent, privé ou non global
            DuplicateReferentielError: Code déjà présent dans le CFA
        """
        source = self.get_referentiel(referentiel_id, with_tree=True)
        if not source.is_global:
            raise ReferentielNotFoundError(f"Référentiel global {referentiel_id} non trouvé")
        self._check_code_free(source.code_rncp)

        copy = Referentiel(
            tenant_id=self.tenant_id,
            is_global=False,
            is_public=False,
            code_rncp=source.code_rncp,
            title=source.title,
        )
        for bloc in source.blocs:
            bloc_copy = BlocCompetence(title=bloc.title, order_index=bloc.order_index)
            for competence in bloc.competences:
                comp_copy = Competence(description=competence.description)
                comp_copy.indicateurs = [
                    Indicateur(description=i.description) for i in competence.indicateurs
                ]
                bloc_copy.competences.append(comp_copy)
            copy.blocs.append(bloc_copy)

        source.download_count = (source.download_count or 0) + 1
        self.db.add(copy)
        self.db.commit()
        self.db.refresh(copy)
        logger.info(f"📥 Référentiel {source.code_rncp} importé dans le tenant {self.tenant_id}")
        return copy

    # =========================================================================
    # STRUCTURE D'UN BLOC
    # =========================================================================

    def get_bloc(self, bloc_id: int) -> BlocCompetence:
        bloc = self.db.get(BlocCompetence, bloc_id)
        if bloc is None:
            raise BlocNotFoundError(f"Bloc {bloc_id} non trouvé")
        self._get_owned(bloc.referentiel_id)
        return bloc

    def replace_bloc_structure(self, bloc_id: int, competences: List[Dict[str, Any]]) -> BlocCompetence:
        """
        Remplace les compétences et indicateurs d'un bloc.

        Les anciennes compétences (et leurs affectations TSF) sont supprimées.
        """
        bloc = self.get_bloc(bloc_id)
        bloc.competences.clear()
        self.db.flush()
        for comp_data in competences:
            competence = Competence(description=comp_data["description"])
            competence.indicateurs = [
                Indicateur(description=label) for label in comp_data.get("indicateurs") or []
            ]
            bloc.competences.append(competence)
        self.db.commit()
        self.db.refresh(bloc)
        return bloc

"""
Services métier pour le module TSF (Tableau Stratégique de Formation).

Contient :
- generate_tsf : découpage semestriel et répartition des blocs
- TSFService : initialisation du parcours (semestre, trimestre, mois),
  arbre du TSF, affectations, validations d'indicateurs, progression

Version multi-tenant : toutes les requêtes filtrent par tenant_id.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.core.dates import add_months, months_between
from app.models.assessment.assessment import (
    ACQUIRED_LEVEL,
    EvaluationIndicateur,
    InitialAssessment,
    Positioning,
)
from app.models.contract.contract import Contract
from app.models.contract.period import Period
from app.models.contract.tsf_mapping import TSFMapping
from app.models.enums import EvaluationStatus, Lieu, MappingStatus, PeriodType, TsfStatus
from app.models.referentiel.referentiel import BlocCompetence, Competence, Indicateur

logger = logging.getLogger(__name__)

# Taille d'une période (en mois) selon le découpage choisi
PERIOD_MONTHS = {
    PeriodType.SEMESTER: 6,
    PeriodType.TRIMESTER: 3,
    PeriodType.MONTH: 1,
}

PERIOD_LABELS = {
    PeriodType.SEMESTER: "Semestre",
    PeriodType.TRIMESTER: "Trimestre",
    PeriodType.MONTH: "Mois",
}

POST_LOCK_CHANGE_LOG = "Mise à jour suite à modification post-verrouillage"


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ContractNotFoundError(Exception):
    """Contrat non trouvé."""
    pass


class ReferentielMissingError(Exception):
    """Aucun référentiel associé au contrat."""
    pass


class ContractLockedError(Exception):
    """Le TSF du contrat est verrouillé."""
    pass


class PeriodNotFoundError(Exception):
    """Période non trouvée."""
    pass


class CompetenceNotFoundError(Exception):
    """Compétence non trouvée dans le référentiel du contrat."""
    pass


class IndicateurNotFoundError(Exception):
    """Indicateur non trouvé dans le référentiel du contrat."""
    pass


class MappingNotFoundError(Exception):
    """Affectation non trouvée."""
    pass


# =============================================================================
# HELPERS
# =============================================================================

def _load_blocs(db: Session, referentiel_id: int) -> List[BlocCompetence]:
    """Blocs du référentiel triés par order_index, compétences chargées."""
    return list(db.execute(
        select(BlocCompetence)
        .options(
            selectinload(BlocCompetence.competences).selectinload(Competence.indicateurs)
        )
        .where(BlocCompetence.referentiel_id == referentiel_id)
        .order_by(BlocCompetence.order_index, BlocCompetence.id)
    ).scalars().all())


def _clear_tsf(db: Session, contract_id: int) -> None:
    db.execute(delete(TSFMapping).where(TSFMapping.contract_id == contract_id))
    db.execute(delete(Period).where(Period.contract_id == contract_id))


def apprentice_acquired_competences(db: Session, apprentice_id: int) -> set:
    """Compétences positionnées au niveau acquis (≥ 3) par l'apprenti."""
    return set(db.execute(
        select(Positioning.competence_id).where(
            Positioning.apprentice_id == apprentice_id,
            Positioning.level_initial >= ACQUIRED_LEVEL,
        )
    ).scalars().all())


def compute_contract_progress(db: Session, contract: Contract) -> int:
    """Pourcentage d'indicateurs validés (ACQUIS) sur le référentiel du contrat."""
    if not contract.referentiel_id:
        return 0

    total = db.execute(
        select(func.count(Indicateur.id))
        .join(Competence, Indicateur.competence_id == Competence.id)
        .join(BlocCompetence, Competence.bloc_id == BlocCompetence.id)
        .where(BlocCompetence.referentiel_id == contract.referentiel_id)
    ).scalar() or 0

    if total == 0:
        return 0

    validated = db.execute(
        select(func.count(EvaluationIndicateur.id)).where(
            EvaluationIndicateur.contract_id == contract.id,
            EvaluationIndicateur.status == EvaluationStatus.ACQUIS,
        )
    ).scalar() or 0

    return round(validated / total * 100)


# =============================================================================
# GÉNÉRATION DU TSF (DÉCOUPAGE SEMESTRIEL)
# =============================================================================

def generate_tsf(db: Session, contract_id: int) -> Dict[str, Any]:
    """
    Génère le TSF d'un contrat en tranches de six mois.

    Étapes (une seule transaction) :
    1. nb_periods = ceil(mois du contrat / 6), au moins 1
    2. Suppression des périodes et affectations existantes
    3. Création des périodes "Période {i} (Semestre)"
    4. Répartition des blocs (ordre order_index) sur les périodes
    5. Une affectation par compétence : ACQUIS si positionnée ≥ 3, sinon PENDING

    Sans référentiel, seules les périodes sont créées (étapes 4 et 5 sautées).

    Returns:
        {"success": bool, "error": Optional[str]}
    """
    try:
        contract = db.get(Contract, contract_id)
        if contract is None:
            raise ContractNotFoundError("Contrat introuvable")

        nb_periods = max(1, math.ceil(months_between(contract.start_date, contract.end_date) / 6))

        _clear_tsf(db, contract.id)

        periods: List[Period] = []
        slice_start = contract.start_date
        for i in range(1, nb_periods + 1):
            slice_end = min(add_months(slice_start, 6), contract.end_date)
            period = Period(
                contract_id=contract.id,
                order_index=i,
                label=f"Période {i} (Semestre)",
                start_date=slice_start,
                end_date=slice_end,
            )
            db.add(period)
            periods.append(period)
            slice_start = slice_end
        db.flush()

        acquired = apprentice_acquired_competences(db, contract.apprentice_id)
        blocs = _load_blocs(db, contract.referentiel_id) if contract.referentiel_id else []

        for k, bloc in enumerate(blocs):
            period_index = min(math.floor(k / len(blocs) * nb_periods), nb_periods - 1)
            period = periods[period_index]
            for competence in bloc.competences:
                is_acquired = competence.id in acquired
                db.add(TSFMapping(
                    contract_id=contract.id,
                    competence_id=competence.id,
                    period_id=period.id,
                    status=MappingStatus.ACQUIS if is_acquired else MappingStatus.PENDING,
                    flag_cfa=not is_acquired,
                    flag_entreprise=not is_acquired,
                ))

        db.commit()
        logger.info(f"✅ TSF généré pour le contrat {contract.id} ({nb_periods} périodes)")
        return {"success": True, "error": None}

    except ContractNotFoundError as e:
        db.rollback()
        return {"success": False, "error": str(e)}
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Échec de génération du TSF (contrat {contract_id}) : {e}")
        return {"success": False, "error": str(e)}


# =============================================================================
# TSF SERVICE
# =============================================================================

class TSFService:
    """
    Service de gestion du TSF d'un contrat.

    Version multi-tenant : toutes les requêtes filtrent par tenant_id.
    """

    def __init__(self, db: Session, tenant_id: int):
        """
        Args:
            db: Session SQLAlchemy
            tenant_id: ID du tenant pour le filtrage multi-tenant
        """
        self.db = db
        self.tenant_id = tenant_id

    def _get_contract(self, contract_id: int) -> Contract:
        contract = self.db.execute(
            select(Contract).where(
                Contract.id == contract_id,
                Contract.tenant_id == self.tenant_id,
            )
        ).scalar_one_or_none()
        if not contract:
            raise ContractNotFoundError(f"Contrat {contract_id} non trouvé")
        return contract

    def _referentiel_competence(self, contract: Contract, competence_id: int) -> Competence:
        competence = self.db.execute(
            select(Competence)
            .join(BlocCompetence, Competence.bloc_id == BlocCompetence.id)
            .where(
                Competence.id == competence_id,
                BlocCompetence.referentiel_id == contract.referentiel_id,
            )
        ).scalar_one_or_none()
        if not competence:
            raise CompetenceNotFoundError(f"Compétence {competence_id} non trouvée")
        return competence

    # =========================================================================
    # INITIALISATION DU PARCOURS
    # =========================================================================

    def initialize_journey(self, contract_id: int, period_type: PeriodType) -> Dict[str, Any]:
        """
        Initialise (ou régénère) le parcours d'un contrat.

        - Périodes de 6, 3 ou 1 mois, libellées "Semestre n", "Trimestre n", "Mois n"
        - Un contrat verrouillé passe à la version suivante et est déverrouillé
        - Blocs répartis par floor(i * nb_periods / nb_blocs)
        - Compétences ACQUIS si le premier diagnostic les positionne ≥ 3

        Returns:
            {"num_periods": int, "version_id": str}

        Raises:
            ContractNotFoundError, ReferentielMissingError
        """
        contract = self._get_contract(contract_id)
        if contract.referentiel_id is None:
            raise ReferentielMissingError("Référentiel introuvable")

        size = PERIOD_MONTHS[period_type]
        num_periods = max(1, math.ceil(months_between(contract.start_date, contract.end_date) / size))

        was_locked = contract.is_locked
        version_id = contract.next_version_id if was_locked else "v1"

        contract.version_id = version_id
        contract.period_type = period_type
        contract.tsf_status = TsfStatus.VALIDATED if was_locked else TsfStatus.DRAFT
        contract.is_locked = False
        contract.change_log = POST_LOCK_CHANGE_LOG if was_locked else None

        _clear_tsf(self.db, contract.id)

        periods: List[Period] = []
        for i in range(num_periods):
            start = add_months(contract.start_date, i * size)
            end = min(add_months(start, size), contract.end_date)
            period = Period(
                contract_id=contract.id,
                order_index=i,
                label=f"{PERIOD_LABELS[period_type]} {i + 1}",
                start_date=start,
                end_date=end,
            )
            self.db.add(period)
            periods.append(period)
        self.db.flush()

        first_assessment = self.db.execute(
            select(InitialAssessment)
            .options(selectinload(InitialAssessment.positionings))
            .where(InitialAssessment.contract_id == contract.id)
            .order_by(InitialAssessment.id)
            .limit(1)
        ).scalar_one_or_none()
        acquired = first_assessment.acquired_competence_ids if first_assessment else set()

        blocs = _load_blocs(self.db, contract.referentiel_id)
        for i, bloc in enumerate(blocs):
            period = periods[math.floor(i * num_periods / len(blocs))]
            for competence in bloc.competences:
                self.db.add(TSFMapping(
                    contract_id=contract.id,
                    competence_id=competence.id,
                    period_id=period.id,
                    lieu=Lieu.MIXTE,
                    status=MappingStatus.ACQUIS if competence.id in acquired else MappingStatus.PENDING,
                ))

        self.db.commit()
        logger.info(
            f"✅ Parcours initialisé pour le contrat {contract.id} "
            f"({num_periods} x {period_type.value}, {version_id})"
        )
        return {"num_periods": num_periods, "version_id": version_id}

    # =========================================================================
    # ARBRE DU TSF
    # =========================================================================

    def get_tree(self, contract_id: int) -> Dict[str, Any]:
        """
        Retourne le TSF complet : périodes, blocs → compétences → indicateurs
        avec l'état des évaluations, et la progression globale.
        """
        contract = self._get_contract(contract_id)
        if contract.referentiel_id is None:
            raise ReferentielMissingError("Contrat sans référentiel associé")

        mappings = {
            m.competence_id: m
            for m in self.db.execute(
                select(TSFMapping).where(TSFMapping.contract_id == contract.id)
            ).scalars().all()
        }
        evaluations = {
            e.indicateur_id: e
            for e in self.db.execute(
                select(EvaluationIndicateur).where(EvaluationIndicateur.contract_id == contract.id)
            ).scalars().all()
        }

        blocs = []
        for bloc in _load_blocs(self.db, contract.referentiel_id):
            competences = []
            for competence in bloc.competences:
                mapping = mappings.get(competence.id)
                competences.append({
                    "id": competence.id,
                    "description": competence.description,
                    "period_id": mapping.period_id if mapping else None,
                    "mapping_status": mapping.status.value if mapping else None,
                    "flag_cfa": mapping.flag_cfa if mapping else False,
                    "flag_entreprise": mapping.flag_entreprise if mapping else False,
                    "indicateurs": [
                        {
                            "id": ind.id,
                            "description": ind.description,
                            "status": evaluations[ind.id].status.value if ind.id in evaluations else "PENDING",
                            "checked_at": evaluations[ind.id].checked_at if ind.id in evaluations else None,
                        }
                        for ind in sorted(competence.indicateurs, key=lambda i: i.description)
                    ],
                })
            blocs.append({
                "id": bloc.id,
                "title": bloc.title,
                "order_index": bloc.order_index,
                "competences": competences,
            })

        return {
            "contract_id": contract.id,
            "tsf_status": contract.tsf_status.value,
            "is_locked": contract.is_locked,
            "version_id": contract.version_id,
            "periods": self.db.execute(
                select(Period)
                .where(Period.contract_id == contract.id)
                .order_by(Period.order_index)
            ).scalars().all(),
            "blocs": blocs,
            "progress": compute_contract_progress(self.db, contract),
        }

    # =========================================================================
    # AFFECTATIONS
    # =========================================================================

    def upsert_mapping(
            self,
            contract_id: int,
            competence_id: int,
            period_id: int,
            flag_cfa: bool,
            flag_entreprise: bool,
    ) -> TSFMapping:
        """
        Crée ou met à jour la cellule (contrat, compétence, période).

        Raises:
            ContractLockedError: TSF verrouillé
        """
        contract = self._get_contract(contract_id)
        if contract.is_locked:
            raise ContractLockedError("Le TSF est verrouillé : créez une nouvelle version")

        self._referentiel_competence(contract, competence_id)
        period = self.db.execute(
            select(Period).where(Period.id == period_id, Period.contract_id == contract.id)
        ).scalar_one_or_none()
        if not period:
            raise PeriodNotFoundError(f"Période {period_id} non trouvée")

        mapping = self.db.execute(
            select(TSFMapping).where(
                TSFMapping.contract_id == contract.id,
                TSFMapping.competence_id == competence_id,
                TSFMapping.period_id == period_id,
            )
        ).scalar_one_or_none()

        if mapping is None:
            mapping = TSFMapping(
                contract_id=contract.id,
                competence_id=competence_id,
                period_id=period_id,
            )
            self.db.add(mapping)

        mapping.flag_cfa = flag_cfa
        mapping.flag_entreprise = flag_entreprise
        mapping.status = MappingStatus.PLANIFIE

        self.db.commit()
        self.db.refresh(mapping)
        return mapping

    def validate_mapping(self, mapping_id: int, status: str) -> TSFMapping:
        """Validation rapide d'une compétence par le tuteur ou le formateur."""
        mapping = self.db.execute(
            select(TSFMapping)
            .join(Contract, TSFMapping.contract_id == Contract.id)
            .where(TSFMapping.id == mapping_id, Contract.tenant_id == self.tenant_id)
        ).scalar_one_or_none()
        if not mapping:
            raise MappingNotFoundError(f"Affectation {mapping_id} non trouvée")

        mapping.status = MappingStatus(status)
        self.db.commit()
        self.db.refresh(mapping)
        return mapping

    def get_mapping_contract(self, mapping_id: int) -> Contract:
        """Contrat d'une affectation (contrôle d'accès du tuteur)."""
        contract = self.db.execute(
            select(Contract)
            .join(TSFMapping, TSFMapping.contract_id == Contract.id)
            .where(TSFMapping.id == mapping_id, Contract.tenant_id == self.tenant_id)
        ).scalar_one_or_none()
        if not contract:
            raise MappingNotFoundError(f"Affectation {mapping_id} non trouvée")
        return contract

    # =========================================================================
    # INDICATEURS
    # =========================================================================

    def toggle_indicator(
            self,
            contract_id: int,
            indicateur_id: int,
            status: str,
            validator_id: int,
    ) -> Optional[EvaluationIndicateur]:
        """
        Valide (ACQUIS) ou annule (PENDING) un indicateur.

        PENDING supprime l'évaluation existante et retourne None.
        """
        contract = self._get_contract(contract_id)

        indicateur = self.db.execute(
            select(Indicateur)
            .join(Competence, Indicateur.competence_id == Competence.id)
            .join(BlocCompetence, Competence.bloc_id == BlocCompetence.id)
            .where(
                Indicateur.id == indicateur_id,
                BlocCompetence.referentiel_id == contract.referentiel_id,
            )
        ).scalar_one_or_none()
        if not indicateur:
            raise IndicateurNotFoundError(f"Indicateur {indicateur_id} non trouvé")

        if status == EvaluationStatus.PENDING.value:
            self.db.execute(delete(EvaluationIndicateur).where(
                EvaluationIndicateur.contract_id == contract.id,
                EvaluationIndicateur.indicateur_id == indicateur_id,
            ))
            self.db.commit()
            return None

        evaluation = self.db.execute(
            select(EvaluationIndicateur).where(
                EvaluationIndicateur.contract_id == contract.id,
                EvaluationIndicateur.indicateur_id == indicateur_id,
            )
        ).scalar_one_or_none()
        if evaluation is None:
            evaluation = EvaluationIndicateur(contract_id=contract.id, indicateur_id=indicateur_id)
            self.db.add(evaluation)

        evaluation.status = EvaluationStatus.ACQUIS
        evaluation.checked_at = datetime.now(timezone.utc)
        evaluation.validator_id = validator_id

        self.db.commit()
        self.db.refresh(evaluation)
        return evaluation

    def get_progress_by_bloc(self, contract_id: int) -> List[Dict[str, Any]]:
        """Progression par bloc : indicateurs ACQUIS / indicateurs du bloc."""
        contract = self._get_contract(contract_id)
        if contract.referentiel_id is None:
            return []

        acquired_ids = set(self.db.execute(
            select(EvaluationIndicateur.indicateur_id).where(
                EvaluationIndicateur.contract_id == contract.id,
                EvaluationIndicateur.status == EvaluationStatus.ACQUIS,
            )
        ).scalars().all())

        progress = []
        for bloc in _load_blocs(self.db, contract.referentiel_id):
            indicateurs = [ind for c in bloc.competences for ind in c.indicateurs]
            total = len(indicateurs)
            acquired = sum(1 for ind in indicateurs if ind.id in acquired_ids)
            progress.append({
                "bloc_id": bloc.id,
                "title": bloc.title,
                "percentage": round(acquired / total * 100) if total else 0,
                "total": total,
                "acquired": acquired,
            })
        return progress

"""
Services métier pour le suivi des contrats (indicateur 20 Qualiopi).

Contient :
- sync_milestones : génération des jalons réglementaires d'un contrat
- compute_contract_health : score de santé 0-100 et feu tricolore
- run_daily_alerts : relances J-7, J et escalade J+5 (tâche planifiée)
- MonitoringService : assiduité, jalons et notifications d'un tenant
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.dates import add_months, today_utc
from app.core.integrations.email import send_email
from app.models.contract.contract import Contract
from app.models.enums import AttendanceStatus, HealthStatus, MilestoneStatus, NotificationType
from app.models.mixins import as_utc
from app.models.monitoring.attendance import Attendance
from app.models.monitoring.milestone import (
    PROBATION_REVIEW,
    SEMESTER_REVIEW_PREFIX,
    START_INTERVIEW,
    Milestone,
)
from app.models.monitoring.notification import NotificationLog
from app.models.proof.proof import Proof
from app.models.tenants.tenant import Tenant

logger = logging.getLogger(__name__)

# Barème du score de santé
HEALTH_BASE_SCORE = 100
INACTIVE_JOURNAL_DAYS = 15
INACTIVE_JOURNAL_PENALTY = 20
OVERDUE_MILESTONE_PENALTY = 30
ABSENCE_RATE_THRESHOLD = 10.0
ABSENCE_PENALTY = 10

# Relances sur les jalons (jours avant échéance)
REMINDER_DAYS = 7
ESCALATION_DAYS = -5


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ContractNotFoundError(Exception):
    """Contrat non trouvé."""
    pass


class MilestoneNotFoundError(Exception):
    """Jalon non trouvé."""
    pass


class NotificationNotFoundError(Exception):
    """Notification non trouvée."""
    pass


# =============================================================================
# JALONS
# =============================================================================

def sync_milestones(db: Session, contract: Contract) -> List[Milestone]:
    """
    Crée les jalons réglementaires manquants d'un contrat.

    - START_INTERVIEW : entretien de démarrage à J+7
    - PROBATION_REVIEW : bilan de fin de période d'essai à J+45
    - SEMESTER_REVIEW_{m} : bilan tous les 6 mois avant la fin du contrat

    Les types déjà présents sont ignorés. Pas de commit (à la charge de l'appelant).
    """
    existing = set(db.execute(
        select(Milestone.type).where(Milestone.contract_id == contract.id)
    ).scalars().all())

    expected = [
        (START_INTERVIEW, "Entretien de début de parcours (J+7)",
         contract.start_date + timedelta(days=7)),
        (PROBATION_REVIEW, "Bilan de fin de période d'essai (J+45)",
         contract.start_date + timedelta(days=45)),
    ]

    months = 6
    while add_months(contract.start_date, months) < contract.end_date:
        expected.append((
            f"{SEMESTER_REVIEW_PREFIX}{months}",
            f"Bilan semestriel ({months} mois)",
            add_months(contract.start_date, months),
        ))
        months += 6

    created = []
    for milestone_type, title, due_date in expected:
        if milestone_type in existing:
            continue
        milestone = Milestone(
            contract_id=contract.id,
            type=milestone_type,
            title=title,
            due_date=due_date,
        )
        db.add(milestone)
        created.append(milestone)

    if created:
        db.flush()
        logger.info(f"📅 {len(created)} jalon(s) créé(s) pour le contrat {contract.id}")
    return created


# =============================================================================
# SCORE DE SANTÉ
# =============================================================================

def health_status_for(score: int) -> HealthStatus:
    if score > 70:
        return HealthStatus.GOOD
    if score > 40:
        return HealthStatus.WARNING
    return HealthStatus.DANGER


def compute_contract_health(
        db: Session,
        contract: Contract,
        today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Calcule le score de santé d'un contrat.

    Départ à 100 :
    - journal absent ou inactif depuis plus de 15 jours : -20
    - chaque jalon en attente dont l'échéance est dépassée : -30
    - taux d'absence injustifiée (en heures) supérieur à 10 % : -10

    Returns:
        {"score", "status", "reasons"} ; score borné à 0
    """
    today = today or today_utc()
    score = HEALTH_BASE_SCORE
    reasons: List[str] = []

    # 1. Régularité du journal de bord
    last_proof_at = db.execute(
        select(func.max(Proof.created_at)).where(Proof.apprentice_id == contract.apprentice_id)
    ).scalar()
    if last_proof_at is None:
        score -= INACTIVE_JOURNAL_PENALTY
        reasons.append("Aucun journal de bord saisi")
    else:
        days_since = (today - as_utc(last_proof_at).date()).days
        if days_since > INACTIVE_JOURNAL_DAYS:
            score -= INACTIVE_JOURNAL_PENALTY
            reasons.append(f"Journal de bord inactif depuis {days_since} jours")

    # 2. Jalons dépassés
    overdue = db.execute(
        select(func.count(Milestone.id)).where(
            Milestone.contract_id == contract.id,
            Milestone.status == MilestoneStatus.PENDING,
            Milestone.due_date < today,
        )
    ).scalar() or 0
    if overdue:
        score -= OVERDUE_MILESTONE_PENALTY * overdue
        reasons.append(f"{overdue} jalon(s) réglementaire(s) dépassé(s)")

    # 3. Assiduité
    attendances = db.execute(
        select(Attendance).where(Attendance.contract_id == contract.id)
    ).scalars().all()
    total_hours = sum(a.hours for a in attendances)
    if total_hours > 0:
        absent_hours = sum(a.hours for a in attendances if a.is_unjustified_absence)
        absence_rate = absent_hours / total_hours * 100
        if absence_rate > ABSENCE_RATE_THRESHOLD:
            score -= ABSENCE_PENALTY
            reasons.append(f"Taux d'absence injustifiée élevé ({absence_rate:.1f}%)")

    score = max(0, score)
    return {
        "score": score,
        "status": health_status_for(score),
        "reasons": reasons,
    }


# =============================================================================
# RELANCES QUOTIDIENNES
# =============================================================================

def _email_body(title: str, greeting_name: str, message: str, footer: str) -> str:
    return (
        '<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">'
        f"<h2>{title}</h2>"
        f"<p>Bonjour {greeting_name},</p>"
        f"<p>{message}</p>"
        f'<p style="color: #999; font-size: 12px;">{footer}</p>'
        "</div>"
    )


def _log_notification(
        db: Session,
        contract: Contract,
        recipient_id: int,
        milestone: Milestone,
        notification_type: NotificationType,
        title: str,
        content: str,
) -> NotificationLog:
    notification = NotificationLog(
        tenant_id=contract.tenant_id,
        recipient_id=recipient_id,
        milestone_id=milestone.id,
        type=notification_type,
        title=title,
        content=content,
    )
    db.add(notification)
    return notification


def run_daily_alerts(db: Session, today: Optional[date] = None) -> Dict[str, int]:
    """
    Parcourt les jalons en attente de tous les contrats et notifie.

    - échéance dans 7 jours : rappel EMAIL à l'apprenti
    - échéance aujourd'hui : alerte PUSH urgente à l'apprenti
    - échéance dépassée de 5 jours : ALERT d'escalade au formateur

    Chaque relance est journalisée (NotificationLog) et envoyée par email.
    """
    today = today or today_utc()
    results = {"reminders": 0, "urgent": 0, "escalations": 0, "emails_sent": 0}

    milestones = db.execute(
        select(Milestone)
        .join(Contract, Milestone.contract_id == Contract.id)
        .where(Milestone.status == MilestoneStatus.PENDING)
        .order_by(Milestone.due_date)
    ).scalars().all()

    tenant_names: Dict[int, str] = {}

    for milestone in milestones:
        contract = milestone.contract
        apprentice = contract.apprentice
        if apprentice is None:
            continue

        if contract.tenant_id not in tenant_names:
            tenant = db.get(Tenant, contract.tenant_id)
            tenant_names[contract.tenant_id] = tenant.name if tenant else ""
        footer = f"{tenant_names[contract.tenant_id]} - Alternance 360"

        days_until = (milestone.due_date - today).days
        due_label = milestone.due_date.strftime("%d/%m/%Y")

        if days_until == REMINDER_DAYS:
            results["reminders"] += 1
            sent = send_email(
                db, apprentice.email,
                f"Rappel: {milestone.title}",
                _email_body(
                    "Rappel de Jalon", apprentice.display_name,
                    f"Votre jalon <strong>{milestone.title}</strong> arrive à échéance "
                    f"dans 7 jours ({due_label}).",
                    footer,
                ),
            )
            _log_notification(
                db, contract, apprentice.id, milestone, NotificationType.EMAIL,
                f"Rappel Jalon: {milestone.title}",
                "Échéance dans 7 jours",
            )
            if sent:
                results["emails_sent"] += 1

        elif days_until == 0:
            results["urgent"] += 1
            sent = send_email(
                db, apprentice.email,
                f"⚠️ URGENT: {milestone.title} - Aujourd'hui !",
                _email_body(
                    "⚠️ Action Requise Aujourd'hui", apprentice.display_name,
                    f"Le jalon <strong>{milestone.title}</strong> doit être complété "
                    "<strong>aujourd'hui</strong>.",
                    footer,
                ),
            )
            _log_notification(
                db, contract, apprentice.id, milestone, NotificationType.PUSH,
                f"URGENT: Jalon {milestone.title}",
                "À compléter aujourd'hui",
            )
            if sent:
                results["emails_sent"] += 1

        elif days_until == ESCALATION_DAYS and contract.formateur is not None:
            results["escalations"] += 1
            formateur = contract.formateur
            sent = send_email(
                db, formateur.email,
                f"🚨 ESCALADE: Jalon dépassé pour {apprentice.display_name}",
                _email_body(
                    "🚨 Escalade - Intervention Requise", formateur.display_name,
                    f"L'apprenti <strong>{apprentice.display_name}</strong> a dépassé le jalon "
                    f"<strong>{milestone.title}</strong> de 5 jours.",
                    footer,
                ),
            )
            _log_notification(
                db, contract, formateur.id, milestone, NotificationType.ALERT,
                f"ESCALADE: Jalon dépassé pour {apprentice.display_name}",
                f'Jalon "{milestone.title}" dépassé de 5 jours',
            )
            if sent:
                results["emails_sent"] += 1

    db.commit()
    logger.info(
        f"🔔 Relances du {today.isoformat()} : {results['reminders']} rappel(s), "
        f"{results['urgent']} urgence(s), {results['escalations']} escalade(s)"
    )
    return results


# =============================================================================
# SERVICE TENANT
# =============================================================================

class MonitoringService:
    """Jalons, assiduité et notifications d'un tenant."""

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    def get_contract(self, contract_id: int) -> Contract:
        contract = self.db.execute(
            select(Contract).where(
                Contract.id == contract_id,
                Contract.tenant_id == self.tenant_id,
            )
        ).scalar_one_or_none()
        if not contract:
            raise ContractNotFoundError(f"Contrat {contract_id} non trouvé")
        return contract

    def _get_milestone(self, milestone_id: int) -> Milestone:
        milestone = self.db.execute(
            select(Milestone)
            .join(Contract, Milestone.contract_id == Contract.id)
            .where(
                Milestone.id == milestone_id,
                Contract.tenant_id == self.tenant_id,
            )
        ).scalar_one_or_none()
        if not milestone:
            raise MilestoneNotFoundError(f"Jalon {milestone_id} non trouvé")
        return milestone

    # --- Jalons ---

    def list_milestones(self, contract_id: int) -> List[Milestone]:
        self.get_contract(contract_id)
        return list(self.db.execute(
            select(Milestone)
            .where(Milestone.contract_id == contract_id)
            .order_by(Milestone.due_date)
        ).scalars().all())

    def get_milestone_contract(self, milestone_id: int) -> Contract:
        return self._get_milestone(milestone_id).contract

    def complete_milestone(self, milestone_id: int) -> Milestone:
        milestone = self._get_milestone(milestone_id)
        if milestone.status != MilestoneStatus.COMPLETED:
            milestone.status = MilestoneStatus.COMPLETED
            milestone.completed_at = datetime.now(timezone.utc)
            self.db.commit()
            self.db.refresh(milestone)
            logger.info(f"✅ Jalon {milestone.type} réalisé (contrat {milestone.contract_id})")
        return milestone

    # --- Assiduité ---

    def record_attendance(
            self,
            contract_id: int,
            day: date,
            attendance_status: AttendanceStatus,
            hours: float = 7.0,
            comment: Optional[str] = None,
    ) -> Attendance:
        """Enregistre l'assiduité d'une journée (remplace la saisie existante)."""
        self.get_contract(contract_id)
        attendance = self.db.execute(
            select(Attendance).where(
                Attendance.contract_id == contract_id,
                Attendance.date == day,
            )
        ).scalar_one_or_none()

        if attendance is None:
            attendance = Attendance(contract_id=contract_id, date=day)
            self.db.add(attendance)

        attendance.status = attendance_status
        attendance.hours = hours
        attendance.comment = comment
        self.db.commit()
        self.db.refresh(attendance)
        return attendance

    def list_attendance(self, contract_id: int) -> List[Attendance]:
        self.get_contract(contract_id)
        return list(self.db.execute(
            select(Attendance)
            .where(Attendance.contract_id == contract_id)
            .order_by(Attendance.date.desc())
        ).scalars().all())

    # --- Santé ---

    def get_contract_health(self, contract_id: int) -> Dict[str, Any]:
        return compute_contract_health(self.db, self.get_contract(contract_id))

    # --- Notifications ---

    def list_notifications(self, user_id: int, unread_only: bool = False) -> List[NotificationLog]:
        query = select(NotificationLog).where(
            NotificationLog.tenant_id == self.tenant_id,
            NotificationLog.recipient_id == user_id,
        )
        if unread_only:
            query = query.where(NotificationLog.is_read.is_(False))
        return list(self.db.execute(
            query.order_by(NotificationLog.created_at.desc())
        ).scalars().all())

    def mark_notification_read(self, notification_id: int, user_id: int) -> NotificationLog:
        notification = self.db.execute(
            select(NotificationLog).where(
                NotificationLog.id == notification_id,
                NotificationLog.tenant_id == self.tenant_id,
                NotificationLog.recipient_id == user_id,
            )
        ).scalar_one_or_none()
        if not notification:
            raise NotificationNotFoundError(f"Notification {notification_id} non trouvée")
        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification

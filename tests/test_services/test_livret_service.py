"""
Tests du livret d'apprentissage.

================================================================================
STRUCTURE DU FICHIER
================================================================================

    Classe                      | Description
    ----------------------------|------------------------------------------------
    TestConsolidation           | Données figées, journal, statistiques
    TestTripartiteSignature     | Apprenti / tuteur / CFA, finalisation
    TestMagicLink               | Invitation du tuteur, vérification, signature
    TestPromotionSigning        | Signature groupée tout ou rien, rapports
    TestProgressReport          | Bilan par bloc et empreinte de vérification

================================================================================
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.livrets.services import (
    AlreadySignedError,
    InvalidMagicTokenError,
    LivretService,
    ReferentielMissingError,
    SignatureForbiddenError,
    TutorEmailConflictError,
    consolidate_livret_data,
    generate_progress_report,
    sign_with_magic_token,
    verify_magic_token,
)
from app.api.v1.tsf.services import TSFService
from app.core.security.hashing import sha256_hex
from app.models import (
    AuditLog,
    Contract,
    EvaluationIndicateur,
    HistoricalReport,
    LivretStatus,
    MagicToken,
    PeriodType,
    Proof,
    ReportType,
    SignerRole,
    User,
    UserRole,
)


@pytest.fixture
def livret(db_session: Session, contract: Contract, tenant):
    TSFService(db_session, tenant.id).initialize_journey(contract.id, PeriodType.SEMESTER)
    return LivretService(db_session, tenant.id).create_livret(contract.id)


def _validate_indicators(db: Session, contract: Contract, tenant, validator: User, indicateurs):
    service = TSFService(db, tenant.id)
    for indicateur in indicateurs:
        service.toggle_indicator(contract.id, indicateur.id, "ACQUIS", validator.id)


# =============================================================================
# CONSOLIDATION
# =============================================================================

class TestConsolidation:
    """Tests pour consolidate_livret_data et create_livret."""

    def test_snapshot_content(self, db_session: Session, contract: Contract, tenant, livret):
        snapshot = livret.snapshot

        assert livret.status == LivretStatus.DRAFT
        assert livret.document_id == snapshot["document_id"]
        assert len(snapshot["document_id"]) == 8
        assert snapshot["tenant"]["name"] == "CFA Test"
        assert snapshot["apprentice"]["full_name"] == "David Leroy"
        assert snapshot["stats"]["total_competences"] == 6
        assert snapshot["stats"]["total_blocs"] == 3
        assert snapshot["contract"]["start_date"] == "2025-09-01"

    def test_journal_limited_to_twenty_entries(self, db_session: Session, contract: Contract, tenant):
        base = datetime(2025, 9, 1, tzinfo=timezone.utc)
        db_session.add_all([
            Proof(
                tenant_id=tenant.id,
                apprentice_id=contract.apprentice_id,
                title=f"Entrée {i}",
                created_at=base + timedelta(days=i),
            )
            for i in range(25)
        ])
        db_session.commit()

        data = consolidate_livret_data(db_session, contract)

        assert len(data["journal_entries"]) == 20
        assert data["journal_entries"][0]["title"] == "Entrée 24"

    def test_requires_referentiel(self, db_session: Session, contract: Contract):
        contract.referentiel_id = None
        with pytest.raises(ReferentielMissingError):
            consolidate_livret_data(db_session, contract)


# =============================================================================
# SIGNATURE TRIPARTITE
# =============================================================================

class TestTripartiteSignature:
    """Tests pour LivretService.sign."""

    def test_full_signature_flow(self, db_session: Session, tenant, livret, apprentice, tutor, formateur):
        service = LivretService(db_session, tenant.id)

        livret, finalized = service.sign(livret.id, SignerRole.APPRENTICE, apprentice, "sig-apprenti")
        assert livret.status == LivretStatus.PARTIALLY_SIGNED
        assert finalized is False

        livret, finalized = service.sign(livret.id, SignerRole.TUTOR, tutor, "sig-tuteur")
        assert livret.status == LivretStatus.PARTIALLY_SIGNED
        assert finalized is False

        livret, finalized = service.sign(livret.id, SignerRole.CFA, formateur, "sig-cfa")
        assert finalized is True
        assert livret.status == LivretStatus.FULLY_SIGNED
        assert livret.signed_at is not None
        assert livret.cfa_signer_id == formateur.id
        assert service.signature_status(livret.id)["is_fully_signed"] is True

    def test_order_does_not_matter(self, db_session: Session, tenant, livret, apprentice, tutor, admin):
        service = LivretService(db_session, tenant.id)
        service.sign(livret.id, SignerRole.CFA, admin, "sig-cfa")
        service.sign(livret.id, SignerRole.TUTOR, tutor, "sig-tuteur")
        livret, finalized = service.sign(livret.id, SignerRole.APPRENTICE, apprentice, "sig-apprenti")

        assert finalized is True

    def test_concurrent_last_signatures_finalize(self, engine, db_session: Session, tenant, livret,
                                                 apprentice, tutor, formateur):
        """Deux signataires qui ont chargé le livret en même temps : le second finalise."""
        LivretService(db_session, tenant.id).sign(livret.id, SignerRole.CFA, formateur, "sig-cfa")

        session_a = Session(bind=engine, autoflush=False, expire_on_commit=False)
        session_b = Session(bind=engine, autoflush=False, expire_on_commit=False)
        try:
            service_a = LivretService(session_a, tenant.id)
            service_b = LivretService(session_b, tenant.id)
            service_a.get_livret(livret.id)
            service_b.get_livret(livret.id)

            _, finalized_a = service_a.sign(livret.id, SignerRole.APPRENTICE, apprentice, "sig-apprenti")
            signed, finalized_b = service_b.sign(livret.id, SignerRole.TUTOR, tutor, "sig-tuteur")
        finally:
            session_a.close()
            session_b.close()

        assert (finalized_a, finalized_b) == (False, True)
        assert signed.status == LivretStatus.FULLY_SIGNED
        db_session.refresh(livret)
        assert livret.status == LivretStatus.FULLY_SIGNED
        assert livret.signed_at is not None

    def test_cannot_sign_twice(self, db_session: Session, tenant, livret, apprentice):
        service = LivretService(db_session, tenant.id)
        service.sign(livret.id, SignerRole.APPRENTICE, apprentice, "sig")

        with pytest.raises(AlreadySignedError):
            service.sign(livret.id, SignerRole.APPRENTICE, apprentice, "sig")

    def test_wrong_signer_for_role(self, db_session: Session, tenant, livret, apprentice, tutor):
        service = LivretService(db_session, tenant.id)

        with pytest.raises(SignatureForbiddenError):
            service.sign(livret.id, SignerRole.TUTOR, apprentice, "sig")
        with pytest.raises(SignatureForbiddenError):
            service.sign(livret.id, SignerRole.APPRENTICE, tutor, "sig")
        with pytest.raises(SignatureForbiddenError):
            service.sign(livret.id, SignerRole.CFA, tutor, "sig")

    def test_webhook_payload(self, db_session: Session, tenant, livret, apprentice):
        payload = LivretService(db_session, tenant.id).webhook_payload(livret)

        assert payload["livretId"] == livret.id
        assert payload["apprenticeEmail"] == apprentice.email
        assert payload["tripartite"] is True
        assert payload["downloadUrl"].endswith(f"{livret.document_id}.pdf")


# =============================================================================
# LIENS MAGIQUES
# =============================================================================

class TestMagicLink:
    """Tests pour invite_tutor, verify_magic_token et sign_with_magic_token."""

    def _invite(self, db: Session, tenant, contract: Contract, monkeypatch, email="maitre@societe.fr"):
        """Invite le tuteur et capture le jeton en clair."""
        captured = {}

        import app.api.v1.livrets.services as livret_services
        real_generate = livret_services.generate_token

        def capture_token(length=32):
            captured["token"] = real_generate(length)
            return captured["token"]

        monkeypatch.setattr(livret_services, "generate_token", capture_token)
        result = LivretService(db, tenant.id).invite_tutor(contract.id, email, "Maître Durand")
        return result, captured["token"]

    def test_invite_creates_external_tutor(self, db_session: Session, tenant, contract: Contract, monkeypatch):
        result, token = self._invite(db_session, tenant, contract, monkeypatch)

        tutor = db_session.get(User, result["tutor_id"])
        assert tutor.role == UserRole.TUTOR_EXT
        assert tutor.full_name == "Maître Durand"
        assert contract.tutor_id == tutor.id
        assert result["email_sent"] is False  # pas de SMTP configuré en test

        magic = db_session.execute(select(MagicToken)).scalar_one()
        assert magic.token_hash == sha256_hex(token)
        assert magic.token_hash != token

    def test_invite_rejects_foreign_email(self, db_session: Session, tenant, contract: Contract, apprentice):
        with pytest.raises(TutorEmailConflictError):
            LivretService(db_session, tenant.id).invite_tutor(contract.id, apprentice.email)

    def test_verify_and_sign(self, db_session: Session, tenant, contract: Contract, livret, monkeypatch):
        result, token = self._invite(db_session, tenant, contract, monkeypatch)

        context = verify_magic_token(db_session, token)
        assert context["tutor"].id == result["tutor_id"]
        assert context["contract"].id == contract.id

        signed, finalized = sign_with_magic_token(db_session, livret.id, token, "sig-tuteur")
        assert signed.tutor_signed_at is not None
        assert finalized is False
        assert db_session.execute(select(MagicToken)).scalar_one().used_at is not None

    def test_unknown_or_expired_token(self, db_session: Session, tenant, contract: Contract, monkeypatch):
        with pytest.raises(InvalidMagicTokenError):
            verify_magic_token(db_session, "inconnu")

        _, token = self._invite(db_session, tenant, contract, monkeypatch)
        magic = db_session.execute(select(MagicToken)).scalar_one()
        magic.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db_session.commit()

        with pytest.raises(InvalidMagicTokenError):
            verify_magic_token(db_session, token)


# =============================================================================
# SIGNATURE GROUPÉE
# =============================================================================

class TestPromotionSigning:
    """Tests pour sign_promotion."""

    def test_signs_acquired_indicators(
            self, db_session: Session, tenant, contract: Contract, referentiel, formateur, admin,
    ):
        indicateurs = referentiel.competences[0].indicateurs
        _validate_indicators(db_session, contract, tenant, formateur, indicateurs)

        result = LivretService(db_session, tenant.id).sign_promotion(
            referentiel.id, [contract.apprentice_id], admin, ip_address="10.0.0.1",
        )

        assert result == {"success": True, "count": 1, "signed_indicators": 2}
        evaluations = db_session.execute(select(EvaluationIndicateur)).scalars().all()
        db_session.expire_all()
        assert all(e.is_signed for e in evaluations)

        [report] = db_session.execute(select(HistoricalReport)).scalars().all()
        assert report.type == ReportType.SEMESTER_REPORT
        assert report.signed_by == admin.id

        [entry] = db_session.execute(
            select(AuditLog).where(AuditLog.action == "BATCH_SIGN_PROMOTION")
        ).scalars().all()
        assert entry.ip_address == "10.0.0.1"
        assert entry.details["count"] == 1

    def test_ignores_apprentices_outside_selection(self, db_session: Session, tenant, contract: Contract, referentiel, admin):
        result = LivretService(db_session, tenant.id).sign_promotion(referentiel.id, [], admin)

        assert result["count"] == 0
        assert db_session.execute(select(HistoricalReport)).scalars().all() == []

    def test_promotion_apprentices(self, db_session: Session, tenant, contract: Contract, referentiel):
        [row] = LivretService(db_session, tenant.id).promotion_apprentices(referentiel.id)

        assert row["contract_id"] == contract.id
        assert row["first_name"] == "David"
        assert row["progress"] == 0


# =============================================================================
# BILAN DE PROGRESSION
# =============================================================================

class TestProgressReport:
    """Tests pour generate_progress_report."""

    def test_block_statuses(self, db_session: Session, tenant, contract: Contract, referentiel, formateur):
        first_bloc = referentiel.blocs[0]
        _validate_indicators(
            db_session, contract, tenant, formateur,
            [i for c in first_bloc.competences for i in c.indicateurs],
        )
        _validate_indicators(db_session, contract, tenant, formateur, referentiel.blocs[1].competences[0].indicateurs[:1])

        report = generate_progress_report(db_session, contract)

        statuses = [b["status"] for b in report["blocks"]]
        assert statuses == ["VALIDATED", "IN_PROGRESS", "NOT_STARTED"]
        assert report["blocks"][0]["last_signed_at"] is not None
        assert report["global_average"] == 42  # 5 / 12
        assert len(report["verification_hash"]) == 12
        assert report["verification_hash"] == report["verification_hash"].upper()
        assert report["apprentice_name"] == "David Leroy"

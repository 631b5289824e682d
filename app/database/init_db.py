"""
Initialisation de la base de données Alternance360
Crée les tables, le CFA de démonstration, son abonnement, le super-admin
de la plateforme, l'administrateur du CFA et un référentiel global d'exemple.
"""

import logging
import sys
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.security.hashing import generate_password, hash_password
from app.database.base_class import Base
from app.database.session import engine, db_session, check_database_connection
from app.models import (
    BlocCompetence,
    Competence,
    Indicateur,
    Referentiel,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    Tenant,
    User,
    UserRole,
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEFAULT_TENANT_SLUG = "cfa-demo"

# Référentiel d'exemple : blocs -> compétences -> indicateurs
DEMO_REFERENTIEL = {
    "code_rncp": "RNCP35475",
    "title": "BTS Services informatiques aux organisations",
    "blocs": [
        {
            "title": "Support et mise à disposition de services informatiques",
            "competences": [
                ("Gérer le patrimoine informatique", [
                    "Recenser et identifier les ressources numériques",
                    "Mettre en place et vérifier les niveaux d'habilitation",
                ]),
                ("Répondre aux incidents et aux demandes d'assistance", [
                    "Collecter, suivre et orienter des demandes",
                    "Traiter des demandes concernant les services réseau",
                ]),
            ],
        },
        {
            "title": "Cybersécurité des services informatiques",
            "competences": [
                ("Protéger les données à caractère personnel", [
                    "Recenser les traitements sur les données personnelles",
                ]),
                ("Préserver l'identité numérique de l'organisation", [
                    "Protéger l'identité numérique d'une organisation",
                    "Déployer les moyens appropriés de preuve électronique",
                ]),
            ],
        },
    ],
}


# =============================================================================
# 1. CRÉATION DES TABLES
# =============================================================================

def create_all_tables() -> bool:
    """
    Crée toutes les tables de la base de données.

    Returns:
        True si succès, False sinon
    """
    try:
        logger.info("📦 Création des tables...")
        Base.metadata.create_all(bind=engine)

        table_names = list(Base.metadata.tables.keys())
        logger.info(f"✅ {len(table_names)} tables créées : {', '.join(sorted(table_names))}")
        return True
    except Exception as e:
        logger.error(f"❌ Erreur lors de la création des tables : {e}")
        return False


def drop_all_tables() -> bool:
    """
    Supprime toutes les tables de la base de données.

    ⚠️ ATTENTION : Cette action est irréversible !
    """
    try:
        logger.warning("❗️ Suppression de toutes les tables...")
        Base.metadata.drop_all(bind=engine)
        logger.info("✅ Toutes les tables ont été supprimées")
        return True
    except Exception as e:
        logger.error(f"❌ Erreur lors de la suppression des tables : {e}")
        return False


# =============================================================================
# 2. CFA DE DÉMONSTRATION
# =============================================================================

def init_default_tenant(db: Session) -> Tenant:
    """Crée le CFA de démonstration s'il n'existe pas."""
    logger.info("🏫 Initialisation du CFA de démonstration...")

    tenant = db.execute(
        select(Tenant).where(Tenant.slug == DEFAULT_TENANT_SLUG)
    ).scalar_one_or_none()
    if tenant:
        logger.info(f"   ℹ️ CFA '{tenant.name}' existe déjà")
        return tenant

    tenant = Tenant(
        name="CFA Démo",
        slug=DEFAULT_TENANT_SLUG,
        contact_email="contact@cfa-demo.fr",
        qualiopi_certified=True,
    )
    db.add(tenant)
    db.flush()
    logger.info(f"   ✅ CFA créé : {tenant.name} (slug {tenant.slug})")
    return tenant


def init_default_subscription(db: Session, tenant: Tenant) -> Subscription:
    """Rattache un abonnement ESSENTIAL actif au CFA."""
    logger.info("💳 Initialisation de l'abonnement...")

    subscription = tenant.active_subscription
    if subscription:
        logger.info(f"   ℹ️ Abonnement {subscription.plan.value} déjà actif")
        return subscription

    subscription = Subscription(
        tenant_id=tenant.id,
        plan=SubscriptionPlan.ESSENTIAL,
        status=SubscriptionStatus.ACTIVE,
    )
    db.add(subscription)
    db.flush()
    logger.info(f"   ✅ Abonnement {subscription.plan.value} créé")
    return subscription


# =============================================================================
# 3. COMPTES
# =============================================================================

def init_user(
    db: Session,
    email: str,
    role: UserRole,
    tenant: Optional[Tenant] = None,
    password: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> User:
    """
    Crée un compte s'il n'existe pas encore.

    Sans mot de passe fourni, un mot de passe aléatoire est généré
    et affiché une seule fois dans les logs.
    """
    existing = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if existing:
        logger.info(f"   ℹ️ Compte {email} existe déjà")
        return existing

    plain_password = password or generate_password()
    user = User(
        tenant_id=tenant.id if tenant else None,
        email=email,
        password_hash=hash_password(plain_password),
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    user.refresh_full_name()
    db.add(user)
    db.flush()

    logger.info(f"   ✅ Compte créé : {email} ({role.value})")
    if not password:
        logger.info(f"   🔑 Mot de passe généré : {plain_password}")
    return user


# =============================================================================
# 4. RÉFÉRENTIEL D'EXEMPLE
# =============================================================================

def init_demo_referentiel(db: Session) -> Referentiel:
    """Crée un référentiel global d'exemple, visible par tous les CFA."""
    logger.info("📚 Initialisation du référentiel d'exemple...")

    existing = db.execute(
        select(Referentiel).where(
            Referentiel.code_rncp == DEMO_REFERENTIEL["code_rncp"],
            Referentiel.is_global.is_(True),
        )
    ).scalar_one_or_none()
    if existing:
        logger.info(f"   ℹ️ Référentiel {existing.code_rncp} existe déjà")
        return existing

    referentiel = Referentiel(
        tenant_id=None,
        code_rncp=DEMO_REFERENTIEL["code_rncp"],
        title=DEMO_REFERENTIEL["title"],
        is_global=True,
        is_public=True,
    )
    for bloc_index, bloc_data in enumerate(DEMO_REFERENTIEL["blocs"]):
        bloc = BlocCompetence(title=bloc_data["title"], order_index=bloc_index)
        for description, indicateurs in bloc_data["competences"]:
            competence = Competence(description=description)
            competence.indicateurs = [Indicateur(description=text) for text in indicateurs]
            bloc.competences.append(competence)
        referentiel.blocs.append(bloc)

    db.add(referentiel)
    db.flush()
    logger.info(f"   ✅ Référentiel {referentiel.code_rncp} créé ({len(referentiel.blocs)} blocs)")
    return referentiel


# =============================================================================
# 5. FONCTION D'INITIALISATION COMPLÈTE
# =============================================================================

def init_database(
    drop_existing: bool = False,
    super_admin_email: str = "superadmin@alternance360.fr",
    admin_email: str = "admin@cfa-demo.fr",
    admin_password: Optional[str] = None,
    with_demo_referentiel: bool = True,
) -> bool:
    """
    Initialise complètement la base de données Alternance360.

    Étapes :
    1. Vérifie la connexion
    2. (Optionnel) Supprime les tables existantes
    3. Crée toutes les tables
    4. Crée le CFA de démonstration et son abonnement
    5. Crée le super-admin plateforme et l'admin du CFA
    6. (Optionnel) Crée un référentiel global d'exemple

    Returns:
        True si initialisation réussie, False sinon
    """
    logger.info("=" * 60)
    logger.info("🚀 INITIALISATION DE LA BASE DE DONNÉES ALTERNANCE360")
    logger.info("=" * 60)

    logger.info("📡 Vérification de la connexion...")
    if not check_database_connection():
        logger.error("❌ Impossible de se connecter à la base de données")
        logger.error("   Vérifiez DATABASE_URL")
        return False
    logger.info("✅ Connexion OK")

    if drop_existing:
        logger.warning("⚠️ Mode DROP_EXISTING activé")
        if not drop_all_tables():
            return False

    if not create_all_tables():
        return False

    try:
        with db_session() as db:
            tenant = init_default_tenant(db)
            init_default_subscription(db, tenant)

            logger.info("👤 Initialisation des comptes...")
            init_user(
                db,
                email=super_admin_email,
                role=UserRole.SUPER_ADMIN,
                first_name="Super",
                last_name="Admin",
            )
            init_user(
                db,
                email=admin_email,
                role=UserRole.ADMIN,
                tenant=tenant,
                password=admin_password,
                first_name="Admin",
                last_name="CFA",
            )

            if with_demo_referentiel:
                init_demo_referentiel(db)
    except Exception as e:
        logger.exception(f"❌ Erreur lors de l'initialisation des données : {e}")
        return False

    logger.info("=" * 60)
    logger.info("✅ INITIALISATION TERMINÉE AVEC SUCCÈS")
    logger.info("=" * 60)
    logger.info(f"""
📋 Résumé :
   - Tables créées : {len(Base.metadata.tables)}
   - CFA : CFA Démo ({DEFAULT_TENANT_SLUG})
   - Abonnement : {SubscriptionPlan.ESSENTIAL.value}
   - Super-admin : {super_admin_email}
   - Admin CFA : {admin_email}

🚀 Prochaine étape :
   uvicorn app.main:app --reload
""")
    return True


# =============================================================================
# 6. POINT D'ENTRÉE CLI
# =============================================================================

def main():
    """
    Point d'entrée pour exécution en ligne de commande.

    Usage:
        python -m app.database.init_db
        python -m app.database.init_db --drop
    """
    import argparse

    parser = argparse.ArgumentParser(
        description="Initialise la base de données Alternance360"
    )
    parser.add_argument(
        '--drop',
        action='store_true',
        help="Supprime les tables existantes avant création (ATTENTION !)"
    )
    parser.add_argument(
        '--super-admin-email',
        default="superadmin@alternance360.fr",
        help="Email du super-admin plateforme"
    )
    parser.add_argument(
        '--admin-email',
        default="admin@cfa-demo.fr",
        help="Email de l'administrateur du CFA de démonstration"
    )
    parser.add_argument(
        '--admin-password',
        default=None,
        help="Mot de passe de l'administrateur (généré si absent)"
    )
    parser.add_argument(
        '--no-demo',
        action='store_true',
        help="Ne crée pas le référentiel d'exemple"
    )

    args = parser.parse_args()

    if args.drop:
        print("\n⚠️  ATTENTION : Vous allez SUPPRIMER toutes les tables existantes !")
        print("   Toutes les données seront perdues.\n")
        response = input("Êtes-vous sûr ? (oui/non) : ")
        if response.lower() != 'oui':
            print("Annulé.")
            sys.exit(0)

    success = init_database(
        drop_existing=args.drop,
        super_admin_email=args.super_admin_email,
        admin_email=args.admin_email,
        admin_password=args.admin_password,
        with_demo_referentiel=not args.no_demo,
    )
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()

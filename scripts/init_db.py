"""
Database initialization script

Creates every index the API relies on and, optionally, seeds one guide
per persona:
    python scripts/init_db.py
    python scripts/init_db.py --seed-guides
    python scripts/init_db.py --drop-indexes   (rebuild every index)
"""

import argparse
import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

from app.core.logging import setup_logging, get_logger
from app.db.mongo import connect_to_mongo, close_mongo_connection, get_database
from app.db.indexes import create_indexes, drop_all_indexes
from app.services import guide_service
from utils.constants import PERSONA_LABELS

setup_logging()
logger = get_logger("scripts.init_db")

COLLECTIONS = [
    "leads",
    "auth_sessions",
    "lead_tokens",
    "guides",
    "email_templates",
    "email_history",
    "guide_email_sequences",
]

SEED_GUIDES = [
    {"slug": "vendre-rapidement-gironde", "persona": "presse",
     "title": "Vendre rapidement en Gironde", "short_benefit": "Les étapes pour signer en moins de 90 jours"},
    {"slug": "maximiser-prix-vente", "persona": "maximisateur",
     "title": "Maximiser le prix de vente", "short_benefit": "Valoriser votre bien avant la mise en vente"},
    {"slug": "vendre-bien-succession", "persona": "succession",
     "title": "Vendre un bien en succession", "short_benefit": "Démarches, fiscalité et accord des héritiers"},
    {"slug": "vendre-nouvelle-vie", "persona": "nouvelle_vie",
     "title": "Vendre pour une nouvelle vie", "short_benefit": "Divorce, mutation, retraite : organiser la vente"},
    {"slug": "vendre-bien-locatif", "persona": "investisseur",
     "title": "Vendre un bien locatif", "short_benefit": "Plus-value, locataire en place et calendrier"},
    {"slug": "premiere-vente-immobiliere", "persona": "primo",
     "title": "Réussir sa première vente", "short_benefit": "Tout comprendre avant de vendre pour la première fois"},
]


async def seed_guides():
    """Inserts the sample guides whose slug is not taken yet"""
    created = 0
    for order, guide in enumerate(SEED_GUIDES):
        if await guide_service.get_guide_by_slug(guide["slug"]):
            logger.info(f"  ℹ️  Guide already exists: {guide['slug']}")
            continue
        await guide_service.create_guide({**guide, "sort_order": order, "reading_time": 8})
        created += 1

    logger.info(f"  ✅ {created} guide(s) created")


async def main(seed: bool, rebuild: bool):
    logger.info("=" * 60)
    logger.info("  Gironde Leads Database Setup")
    logger.info("=" * 60)

    await connect_to_mongo()

    try:
        if rebuild:
            logger.warning("Dropping existing indexes...")
            await drop_all_indexes()

        await create_indexes()

        db = await get_database()
        logger.info("🔍 Verifying indexes...")
        for name in COLLECTIONS:
            indexes = await db[name].index_information()
            logger.info(f"  {name}: {', '.join(i for i in indexes if i != '_id_') or '-'}")

        if seed:
            logger.info("🌱 Seeding guides...")
            missing = set(PERSONA_LABELS) - {g["persona"] for g in SEED_GUIDES}
            if missing:
                logger.warning(f"No sample guide for personas: {sorted(missing)}")
            await seed_guides()

        for guide in await guide_service.list_guides():
            logger.info(f"  📘 {guide['slug']} ({guide['persona']})")

        logger.info("📊 Current documents:")
        for name in COLLECTIONS:
            logger.info(f"  {name}: {await db[name].count_documents({})}")

        logger.info("✅ Database initialization complete!")

    except Exception as e:
        logger.error(f"❌ Error: {e}", exc_info=True)
        raise

    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create indexes and optionally seed guides")
    parser.add_argument("--seed-guides", action="store_true", help="insert one sample guide per persona")
    parser.add_argument("--drop-indexes", action="store_true", help="drop and recreate every index")
    args = parser.parse_args()
    asyncio.run(main(args.seed_guides, args.drop_indexes))

"""
Email sequence template setup

(Re)creates the 24 persona sequence templates (6 personas x 4 steps):
    python scripts/setup_email_templates.py
"""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

from app.core.logging import setup_logging, get_logger
from app.db.mongo import connect_to_mongo, close_mongo_connection
from app.services.email_template_generator import setup_sequence_templates

setup_logging()
logger = get_logger("scripts.setup_email_templates")


async def main():
    await connect_to_mongo()
    try:
        result = await setup_sequence_templates()
        logger.info(f"Created: {result['created']}, replaced: {result['deleted']}")
        for error in result["errors"]:
            logger.error(f"  ❌ {error}")
    finally:
        await close_mongo_connection()

    if not result["success"]:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())

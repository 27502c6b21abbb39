"""Create the domain verification tables (and companies, for local development)"""
import argparse
import logging
from app.db.base_class import Base
from app.db.session import SessionLocal, engine
from app.models import Company

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_tables():
    logger.info("Creating all database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("All tables created successfully!")


def seed_company(name: str, domain: str):
    db = SessionLocal()
    try:
        company = db.query(Company).filter(Company.name == name).first()
        if company:
            logger.info("Company %s already exists (%s)", name, company.id)
            return
        company = Company(name=name, verified_domain=domain)
        db.add(company)
        db.commit()
        logger.info("Created company %s claiming %s: %s", name, domain, company.id)
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create domain verification tables")
    parser.add_argument("--seed-company", metavar="DOMAIN", help="Also create a demo company claiming DOMAIN")
    args = parser.parse_args()

    create_tables()
    if args.seed_company:
        seed_company("Demo Company", args.seed_company)

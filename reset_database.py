#!/usr/bin/env python3
"""
Database Reset Script
Recria as tabelas e cadastra admin, cardápio e configurações padrão
"""

import os

from sqlmodel import SQLModel, Session

from pizzaria.config import engine, DEFAULT_ADMIN_EMAIL
from pizzaria.main import seed_defaults


def reset_database():
    print("DATABASE RESET SCRIPT")
    print("=" * 30)

    if not os.getenv("DEFAULT_ADMIN_PASSWORD"):
        print("Aviso: DEFAULT_ADMIN_PASSWORD não definido, nenhum admin será criado")

    print("Recriando tabelas...")
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        seed_defaults(session)

    if os.getenv("DEFAULT_ADMIN_PASSWORD"):
        print(f"✓ Admin: {DEFAULT_ADMIN_EMAIL}")
    print("✓ Cardápio padrão cadastrado")
    print("\n✅ Database reset complete!")


if __name__ == "__main__":
    reset_database()
